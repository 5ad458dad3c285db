"""
Task blueprint.

Endpoints:
    GET    /api/v1/tasks[?project_id=]       — visible tasks, or one project's tasks
    POST   /api/v1/tasks                     — create (ADMIN, BUREAU with project access)
    GET    /api/v1/tasks/<id>                — single task
    PATCH  /api/v1/tasks/<id>                — update (any role with access)
    DELETE /api/v1/tasks/<id>                — delete (ADMIN, BUREAU with access)
    GET    /api/v1/tasks/<id>/comments       — list comments
    POST   /api/v1/tasks/<id>/comments       — add a comment (any role with access)

The unfiltered list includes tasks assigned to the caller on projects they
cannot otherwise see; opening such a task still requires project access.
"""

import logging

from flask import Blueprint, g, jsonify, request

from chantier.core.exceptions import ValidationError
from chantier.middleware.project_access import (
    deny_access,
    get_resolver,
    require_auth,
    require_task_access,
)
from chantier.models import db
from chantier.models.task import Task
from chantier.services import task_service
from chantier.services.audit_service import record_audit
from chantier.services.permission import authorize
from chantier.utils.helpers import db_commit_or_error, get_json_body

logger = logging.getLogger(__name__)

task_bp = Blueprint("task", __name__, url_prefix="/api/v1")


@task_bp.route("/tasks", methods=["GET"])
@require_auth
def list_tasks():
    user = g.current_user
    resolver = get_resolver()
    project_id = request.args.get("project_id", type=int)

    if project_id is None:
        tasks = resolver.list_visible_tasks(user.id)
    else:
        if not resolver.can_access_project(user.id, project_id):
            deny_access(user, "Project", project_id)
        tasks = (
            Task.query.filter_by(project_id=project_id)
            .order_by(Task.created_at.desc(), Task.id.desc())
            .all()
        )

    return jsonify({
        "items": [t.to_dict(include_project=True) for t in tasks],
        "total": len(tasks),
    })


@task_bp.route("/tasks", methods=["POST"])
@require_auth
def create_task():
    user = g.current_user
    data = get_json_body()

    project_id = data.get("project_id")
    if isinstance(project_id, bool) or not isinstance(project_id, int):
        raise ValidationError("project_id is required", {"project_id": "required integer"})

    authorize(get_resolver(), user, "task.create", project_id=project_id)
    task, detail = task_service.create_task(project_id=project_id, data=data)

    err = db_commit_or_error()
    if err:
        return err
    record_audit(
        db.session,
        actor_user_id=user.id,
        entity_type="task",
        entity_id=task.id,
        action="create",
        detail=detail,
        project_id=project_id,
    )
    return jsonify(task.to_dict()), 201


@task_bp.route("/tasks/<int:task_id>", methods=["GET"])
@require_task_access("task_id")
def get_task(task_id):
    task = task_service.get_task(task_id)
    return jsonify(task.to_dict(include_project=True))


@task_bp.route("/tasks/<int:task_id>", methods=["PATCH"])
@require_auth
def update_task(task_id):
    user = g.current_user
    authorize(get_resolver(), user, "task.update", task_id=task_id)

    data = get_json_body()
    task = task_service.get_task(task_id)
    task, detail = task_service.update_task(task=task, data=data)

    err = db_commit_or_error()
    if err:
        return err
    record_audit(
        db.session,
        actor_user_id=user.id,
        entity_type="task",
        entity_id=task.id,
        action="update",
        detail=detail,
        project_id=task.project_id,
    )
    return jsonify(task.to_dict())


@task_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
@require_auth
def delete_task(task_id):
    user = g.current_user
    authorize(get_resolver(), user, "task.delete", task_id=task_id)

    task = task_service.get_task(task_id)
    project_id = task.project_id
    detail = task_service.delete_task(task)

    err = db_commit_or_error()
    if err:
        return err
    record_audit(
        db.session,
        actor_user_id=user.id,
        entity_type="task",
        entity_id=task_id,
        action="delete",
        detail=detail,
        project_id=project_id,
    )
    return jsonify({"deleted": True, "id": task_id})


# ── Comments ─────────────────────────────────────────────────────────────

@task_bp.route("/tasks/<int:task_id>/comments", methods=["GET"])
@require_task_access("task_id")
def list_comments(task_id):
    task = task_service.get_task(task_id)
    comments = task_service.list_comments(task)
    return jsonify({"items": [c.to_dict() for c in comments], "total": len(comments)})


@task_bp.route("/tasks/<int:task_id>/comments", methods=["POST"])
@require_auth
def add_comment(task_id):
    user = g.current_user
    authorize(get_resolver(), user, "comment.create", task_id=task_id)

    task = task_service.get_task(task_id)
    comment = task_service.add_comment(task=task, author=user, data=get_json_body())

    err = db_commit_or_error()
    if err:
        return err
    return jsonify(comment.to_dict()), 201
