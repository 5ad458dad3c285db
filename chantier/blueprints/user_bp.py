"""
User blueprint.

Endpoints:
    GET   /api/v1/me              — caller's profile and allowed actions
    GET   /api/v1/users[?role=]   — list users (ADMIN)
    POST  /api/v1/users           — create a user (ADMIN)
"""

from flask import Blueprint, g, jsonify, request

from chantier.middleware.project_access import require_auth
from chantier.models import db
from chantier.services import user_service
from chantier.services.audit_service import record_audit
from chantier.services.permission import allowed_actions, check_permission
from chantier.utils.helpers import db_commit_or_error, get_json_body

user_bp = Blueprint("user", __name__, url_prefix="/api/v1")


@user_bp.route("/me", methods=["GET"])
@require_auth
def me():
    user = g.current_user
    d = user.to_dict(include_counts=True)
    d["allowed_actions"] = sorted(allowed_actions(user.role))
    return jsonify(d)


@user_bp.route("/users", methods=["GET"])
@require_auth
def list_users():
    check_permission(g.current_user, "user.list")
    users = user_service.list_users(role=request.args.get("role"))
    return jsonify({"items": [u.to_dict() for u in users], "total": len(users)})


@user_bp.route("/users", methods=["POST"])
@require_auth
def create_user():
    actor = g.current_user
    check_permission(actor, "user.create")

    user, detail = user_service.create_user(data=get_json_body())

    err = db_commit_or_error()
    if err:
        return err
    record_audit(
        db.session,
        actor_user_id=actor.id,
        entity_type="user",
        entity_id=user.id,
        action="create",
        detail=detail,
    )
    return jsonify(user.to_dict()), 201
