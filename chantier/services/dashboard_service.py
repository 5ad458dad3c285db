"""
Dashboard Service — per-user summary of visible work.

Counts are computed over exactly what the Access Resolver lets the user see:
projects through the project predicate, tasks through the task-list
predicate (which includes the user's own assignments).
"""

import logging
from datetime import date

from sqlalchemy import func

from chantier.models.project import PROJECT_STATUSES, Project
from chantier.models.task import TASK_STATUSES, Task, TaskStatus
from chantier.services.access_resolver import AccessResolver
from chantier.services.project_service import map_marker

logger = logging.getLogger(__name__)

MY_TASKS_LIMIT = 10


def _counts_by_status(query, column, statuses):
    rows = query.with_entities(column, func.count()).group_by(column).all()
    counts = {s: 0 for s in sorted(statuses)}
    for status, count in rows:
        counts[status] = count
    return counts


def get_dashboard(resolver: AccessResolver, user, today: date | None = None) -> dict:
    """Project/task status breakdown plus the caller's open and overdue tasks."""
    today = today or date.today()
    session = resolver.session

    projects = session.query(Project)
    clause = resolver.project_clause(user)
    if clause is not None:
        projects = projects.filter(clause)

    tasks = session.query(Task)
    clause = resolver.task_clause(user)
    if clause is not None:
        tasks = tasks.filter(clause)

    mine = tasks.filter(Task.assignee_id == user.id, Task.status != TaskStatus.DONE.value)
    overdue = mine.filter(Task.due_date.isnot(None), Task.due_date < today).count()
    my_open = (
        mine.order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.id.asc())
        .limit(MY_TASKS_LIMIT)
        .all()
    )

    return {
        "projects": {
            "total": projects.count(),
            "by_status": _counts_by_status(projects, Project.status, PROJECT_STATUSES),
        },
        "tasks": {
            "total": tasks.count(),
            "by_status": _counts_by_status(tasks, Task.status, TASK_STATUSES),
        },
        "my_open_tasks": [t.to_dict(include_project=True) for t in my_open],
        "my_open_task_count": mine.count(),
        "overdue_count": overdue,
    }


def get_map_markers(resolver: AccessResolver, user_id) -> list[dict]:
    """Markers for every visible project that has a usable position."""
    markers = []
    for summary in resolver.list_visible_projects(user_id):
        marker = map_marker(summary.project)
        if marker is not None:
            markers.append(marker)
    return markers
