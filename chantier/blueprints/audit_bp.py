"""
Audit blueprint.

Endpoints:
    GET  /api/v1/audit   — list / filter audit entries

ADMIN may read the whole trail.  Other roles must scope the query to a
project they can access.
"""

from flask import Blueprint, g, jsonify, request

from chantier.core.exceptions import ValidationError
from chantier.middleware.project_access import get_resolver, require_auth
from chantier.models.audit import AUDIT_ACTIONS, AUDIT_ENTITY_TYPES, AuditLog
from chantier.models.auth import Role
from chantier.services.permission import PermissionDenied

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1")


@audit_bp.route("/audit", methods=["GET"])
@require_auth
def list_audit_logs():
    """
    Return paginated audit entries, newest first.

    Query params:
        project_id   — filter by project (required for non-ADMIN callers)
        entity_type  — project | task | user
        action       — create | update | delete
        page         — page number (default 1)
        per_page     — items per page (default 50, max 200)
    """
    user = g.current_user
    q = AuditLog.query

    project_id = request.args.get("project_id", type=int)
    if user.role != Role.ADMIN.value:
        if project_id is None:
            raise PermissionDenied(user.id, "audit.list", reason="project_id required")
        if not get_resolver().can_access_project(user.id, project_id):
            raise PermissionDenied(user.id, "audit.list", reason="no access")
    if project_id is not None:
        q = q.filter(AuditLog.project_id == project_id)

    entity_type = request.args.get("entity_type")
    if entity_type:
        if entity_type not in AUDIT_ENTITY_TYPES:
            raise ValidationError("Invalid entity_type",
                                  {"entity_type": f"must be one of {sorted(AUDIT_ENTITY_TYPES)}"})
        q = q.filter(AuditLog.entity_type == entity_type)

    action = request.args.get("action")
    if action:
        if action not in AUDIT_ACTIONS:
            raise ValidationError("Invalid action", {"action": f"must be one of {sorted(AUDIT_ACTIONS)}"})
        q = q.filter(AuditLog.action == action)

    q = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())

    page = max(1, request.args.get("page", 1, type=int))
    per_page = min(200, max(1, request.args.get("per_page", 50, type=int)))

    paginated = q.paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        "audit_logs": [log.to_dict() for log in paginated.items],
        "total": paginated.total,
        "page": paginated.page,
        "per_page": paginated.per_page,
        "pages": paginated.pages,
    })
