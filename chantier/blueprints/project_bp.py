"""
Project blueprint.

Endpoints:
    GET    /api/v1/projects          — visible projects with task/attachment counts
    POST   /api/v1/projects          — create (ADMIN, BUREAU)
    GET    /api/v1/projects/<id>     — detail with tasks, attachments and audit trail
    PATCH  /api/v1/projects/<id>     — partial update (ADMIN, BUREAU with access)
    DELETE /api/v1/projects/<id>     — delete (ADMIN)
"""

import logging

from flask import Blueprint, g, jsonify

from chantier.middleware.project_access import (
    get_resolver,
    require_auth,
    require_project_access,
)
from chantier.models import db
from chantier.models.project import Attachment
from chantier.models.task import Task
from chantier.services import project_service
from chantier.services.audit_service import list_project_audit, record_audit
from chantier.services.permission import authorize
from chantier.utils.helpers import db_commit_or_error, get_json_body

logger = logging.getLogger(__name__)

project_bp = Blueprint("project", __name__, url_prefix="/api/v1")


@project_bp.route("/projects", methods=["GET"])
@require_auth
def list_projects():
    summaries = get_resolver().list_visible_projects(g.current_user.id)
    return jsonify({
        "items": [s.to_dict() for s in summaries],
        "total": len(summaries),
    })


@project_bp.route("/projects", methods=["POST"])
@require_auth
def create_project():
    user = g.current_user
    authorize(get_resolver(), user, "project.create")

    data = get_json_body()
    project, detail = project_service.create_project(creator=user, data=data)

    err = db_commit_or_error()
    if err:
        return err
    record_audit(
        db.session,
        actor_user_id=user.id,
        entity_type="project",
        entity_id=project.id,
        action="create",
        detail=detail,
        project_id=project.id,
    )
    return jsonify(project.to_dict()), 201


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
@require_project_access("project_id")
def get_project(project_id):
    project = project_service.get_project(project_id)
    tasks = project.tasks.order_by(Task.created_at.desc(), Task.id.desc()).all()
    attachments = project.attachments.order_by(Attachment.created_at.desc(), Attachment.id.desc()).all()

    d = project.to_dict()
    d["tasks"] = [t.to_dict() for t in tasks]
    d["attachments"] = [a.to_dict() for a in attachments]
    d["audit"] = [log.to_dict() for log in list_project_audit(db.session, project_id)]
    return jsonify(d)


@project_bp.route("/projects/<int:project_id>", methods=["PATCH"])
@require_auth
def update_project(project_id):
    user = g.current_user
    authorize(get_resolver(), user, "project.update", project_id=project_id)

    data = get_json_body()
    project = project_service.get_project(project_id)
    project, detail = project_service.update_project(project=project, data=data)

    err = db_commit_or_error()
    if err:
        return err
    record_audit(
        db.session,
        actor_user_id=user.id,
        entity_type="project",
        entity_id=project.id,
        action="update",
        detail=detail,
        project_id=project.id,
    )
    return jsonify(project.to_dict())


@project_bp.route("/projects/<int:project_id>", methods=["DELETE"])
@require_auth
def delete_project(project_id):
    user = g.current_user
    authorize(get_resolver(), user, "project.delete", project_id=project_id)

    project = project_service.get_project(project_id)
    detail = project_service.delete_project(project)

    err = db_commit_or_error()
    if err:
        return err
    record_audit(
        db.session,
        actor_user_id=user.id,
        entity_type="project",
        entity_id=project_id,
        action="delete",
        detail=detail,
        project_id=project_id,
    )
    logger.info("Project %s deleted by user %s", project_id, user.id)
    return jsonify({"deleted": True, "id": project_id})
