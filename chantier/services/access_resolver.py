"""
Access Resolver — row-level visibility of projects and tasks.

A project's access set is fully determined by its creator, its bureau user
and its terrain assignments, combined with the requesting user's role:

    ADMIN    every project (short-circuits before any relationship check)
    BUREAU   project.bureau_id == user OR project.created_by_id == user
    TERRAIN  a ProjectAssignment exists for (project, user)
    other    nothing (deny by default)

Task access is a strict derivation of project access; a task has no ACL of
its own.  The task *list* is the one named exception: it also includes tasks
assigned to the user on projects outside their project predicate, so people
always see their own assignments.

Denial is never an exception here — point checks return False and list
queries return empty lists.  Only a failing data store raises.

Usage:
    resolver = AccessResolver(db.session)
    if not resolver.can_access_project(user_id, project_id):
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import false, func, or_, select

from chantier.models.auth import Role, User
from chantier.models.project import Attachment, Project, ProjectAssignment
from chantier.models.task import Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectSummary:
    """A visible project plus display-only aggregate counts."""

    project: Project
    task_count: int
    attachment_count: int

    def to_dict(self) -> dict:
        d = self.project.to_dict()
        d["counts"] = {"tasks": self.task_count, "attachments": self.attachment_count}
        return d


class AccessResolver:
    """Evaluates per-role access predicates against an injected session."""

    def __init__(self, session):
        self.session = session

    # ── Lookups ──────────────────────────────────────────────────────────

    def _get_user(self, user_id) -> User | None:
        if user_id is None:
            return None
        return self.session.get(User, user_id)

    # ── Predicates ───────────────────────────────────────────────────────

    @staticmethod
    def project_clause(user: User):
        """SQL criterion selecting the projects *user* may see.

        Returns None when every project is visible.
        """
        if user.role == Role.ADMIN.value:
            return None
        if user.role == Role.BUREAU.value:
            return or_(Project.bureau_id == user.id, Project.created_by_id == user.id)
        if user.role == Role.TERRAIN.value:
            return Project.assignments.any(ProjectAssignment.user_id == user.id)
        return false()

    @staticmethod
    def task_clause(user: User):
        """SQL criterion selecting the tasks *user* may list.

        Wider than project access: a task assigned to the user is always
        listed, whatever project it belongs to.
        """
        if user.role == Role.ADMIN.value:
            return None
        if user.role == Role.BUREAU.value:
            return or_(
                Task.assignee_id == user.id,
                Task.project.has(
                    or_(Project.bureau_id == user.id, Project.created_by_id == user.id)
                ),
            )
        if user.role == Role.TERRAIN.value:
            return or_(
                Task.assignee_id == user.id,
                Task.project.has(
                    Project.assignments.any(ProjectAssignment.user_id == user.id)
                ),
            )
        return false()

    # ── Projects ─────────────────────────────────────────────────────────

    def can_access_project(self, user_id, project_id) -> bool:
        """Point check: may *user_id* see and act on *project_id*?"""
        user = self._get_user(user_id)
        if user is None:
            return False
        if project_id is None:
            return False
        project = self.session.get(Project, project_id)
        if project is None:
            return False

        if user.role == Role.ADMIN.value:
            return True
        if user.role == Role.BUREAU.value:
            return project.bureau_id == user.id or project.created_by_id == user.id
        if user.role == Role.TERRAIN.value:
            return any(a.user_id == user.id for a in project.assignments)
        logger.warning("User %s has unknown role %r, access denied", user.id, user.role)
        return False

    def list_visible_projects(self, user_id) -> list[ProjectSummary]:
        """Every project *user_id* may see, most recently updated first."""
        user = self._get_user(user_id)
        if user is None:
            return []

        task_count = (
            select(func.count(Task.id))
            .where(Task.project_id == Project.id)
            .correlate(Project)
            .scalar_subquery()
        )
        attachment_count = (
            select(func.count(Attachment.id))
            .where(Attachment.project_id == Project.id)
            .correlate(Project)
            .scalar_subquery()
        )

        query = self.session.query(Project, task_count, attachment_count)
        clause = self.project_clause(user)
        if clause is not None:
            query = query.filter(clause)
        rows = query.order_by(Project.updated_at.desc(), Project.id.desc()).all()

        return [
            ProjectSummary(project=p, task_count=tc or 0, attachment_count=ac or 0)
            for p, tc, ac in rows
        ]

    def visible_project_ids(self, user_id) -> set[int] | None:
        """Ids of visible projects, or None when the user sees everything."""
        user = self._get_user(user_id)
        if user is None:
            return set()
        clause = self.project_clause(user)
        if clause is None:
            return None
        rows = self.session.query(Project.id).filter(clause).all()
        return {r[0] for r in rows}

    # ── Tasks ────────────────────────────────────────────────────────────

    def can_access_task(self, user_id, task_id) -> bool:
        """Point check delegating to the task's project."""
        if task_id is None:
            return False
        task = self.session.get(Task, task_id)
        if task is None:
            return False
        return self.can_access_project(user_id, task.project_id)

    def list_visible_tasks(self, user_id) -> list[Task]:
        """Tasks *user_id* may list, by due date with undated tasks last."""
        user = self._get_user(user_id)
        if user is None:
            return []

        query = self.session.query(Task)
        clause = self.task_clause(user)
        if clause is not None:
            query = query.filter(clause)
        return (
            query.order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.id.asc())
            .all()
        )
