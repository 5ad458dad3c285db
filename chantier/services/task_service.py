"""Task and comment service.

Same contract as project_service: validate, mutate, flush.  Authorization
runs before these functions are called.
"""

from __future__ import annotations

import logging

from chantier.core.exceptions import NotFoundError, ValidationError
from chantier.models import db
from chantier.models.audit import CreateDetail, DeleteDetail, UpdateDetail, diff_status_progress
from chantier.models.auth import User
from chantier.models.task import TASK_STATUSES, Comment, Task, TaskStatus
from chantier.utils.helpers import parse_bounded_int, parse_date_input

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 5000


def get_task(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFoundError(resource="Task", resource_id=task_id)
    return task


def _resolve_assignee(assignee_id) -> int | None:
    if assignee_id in (None, ""):
        return None
    try:
        assignee_id = int(assignee_id)
    except (TypeError, ValueError):
        raise ValidationError("assignee_id must be an integer", {"assignee_id": "not an integer"})
    user = db.session.get(User, assignee_id)
    if user is None:
        raise ValidationError("assignee_id does not reference a user", {"assignee_id": "unknown user"})
    return user.id


def _apply_fields(task: Task, data: dict, errors: dict) -> None:
    if "status" in data:
        status = str(data.get("status") or "").strip().upper()
        if status not in TASK_STATUSES:
            errors["status"] = f"must be one of {sorted(TASK_STATUSES)}"
        else:
            task.status = status

    if "progress" in data:
        try:
            task.progress = parse_bounded_int(data.get("progress"), minimum=0, maximum=100)
        except ValueError as exc:
            errors["progress"] = str(exc)

    if "due_date" in data:
        try:
            task.due_date = parse_date_input(data.get("due_date"))
        except ValueError as exc:
            errors["due_date"] = str(exc)


def create_task(*, project_id: int, data: dict) -> tuple[Task, CreateDetail]:
    title = str(data.get("title", "") or "").strip()
    errors: dict = {}
    if not title:
        errors["title"] = "required"

    task = Task(
        project_id=project_id,
        title=title,
        status=TaskStatus.TODO.value,
        progress=0,
    )
    _apply_fields(task, data, errors)
    if errors:
        raise ValidationError("Invalid task data", errors)

    task.assignee_id = _resolve_assignee(data.get("assignee_id"))
    db.session.add(task)
    db.session.flush()
    logger.info("Task %s created in project %s", task.id, project_id)

    return task, CreateDetail(title=task.title, extra={"project_id": project_id})


def update_task(*, task: Task, data: dict) -> tuple[Task, UpdateDetail]:
    before = {"status": task.status, "progress": task.progress}
    errors: dict = {}

    if "title" in data:
        title = str(data.get("title") or "").strip()
        if not title:
            errors["title"] = "cannot be empty"
        else:
            task.title = title

    _apply_fields(task, data, errors)
    if errors:
        raise ValidationError("Invalid task data", errors)

    if "assignee_id" in data:
        task.assignee_id = _resolve_assignee(data.get("assignee_id"))

    db.session.flush()
    return task, diff_status_progress(before, {"status": task.status, "progress": task.progress})


def delete_task(task: Task) -> DeleteDetail:
    detail = DeleteDetail(title=task.title)
    db.session.delete(task)
    db.session.flush()
    return detail


# ── Comments ─────────────────────────────────────────────────────────────

def list_comments(task: Task) -> list[Comment]:
    return task.comments.order_by(Comment.created_at.asc(), Comment.id.asc()).all()


def add_comment(*, task: Task, author: User, data: dict) -> Comment:
    body = str(data.get("body", "") or "").strip()
    if not body:
        raise ValidationError("Comment body is required", {"body": "required"})
    if len(body) > MAX_COMMENT_LENGTH:
        raise ValidationError("Comment is too long", {"body": f"max {MAX_COMMENT_LENGTH} characters"})

    comment = Comment(task_id=task.id, author_id=author.id, body=body)
    db.session.add(comment)
    db.session.flush()
    return comment
