"""
Mutation Gate — role-based authorization for write actions.

Uses ACTION_ROLES to decide which roles may perform an action, after the
Access Resolver has confirmed the user can reach the target project/task.

    project.create   —                   ADMIN, BUREAU
    project.update   can_access_project  ADMIN, BUREAU
    project.delete   can_access_project  ADMIN
    task.create      can_access_project  ADMIN, BUREAU
    task.update      can_access_task     every role
    task.delete      can_access_task     ADMIN, BUREAU
    comment.create   can_access_task     every role
    user.create      —                   ADMIN
    user.list        —                   ADMIN

Usage:
    from chantier.services.permission import authorize, PermissionDenied

    # Raises PermissionDenied (403) or NotFoundError (404)
    authorize(resolver, user, "task.delete", task_id=7)

    # Boolean role check
    if has_permission(user.role, "project.create"):
        ...
"""

import logging

from chantier.core.exceptions import NotFoundError
from chantier.models.auth import Role
from chantier.models.project import Project
from chantier.models.task import Task

logger = logging.getLogger(__name__)

_ALL_ROLES = frozenset(r.value for r in Role)

ACTION_ROLES: dict[str, frozenset[str]] = {
    "project.create": frozenset({Role.ADMIN.value, Role.BUREAU.value}),
    "project.update": frozenset({Role.ADMIN.value, Role.BUREAU.value}),
    "project.delete": frozenset({Role.ADMIN.value}),
    "task.create": frozenset({Role.ADMIN.value, Role.BUREAU.value}),
    "task.update": _ALL_ROLES,
    "task.delete": frozenset({Role.ADMIN.value, Role.BUREAU.value}),
    "comment.create": _ALL_ROLES,
    "user.create": frozenset({Role.ADMIN.value}),
    "user.list": frozenset({Role.ADMIN.value}),
}

# Which access check must pass before the role gate is consulted.
_PROJECT_SCOPED = {"project.update", "project.delete", "task.create"}
_TASK_SCOPED = {"task.update", "task.delete", "comment.create"}


class PermissionDenied(Exception):
    """Raised when a user may not perform an action on a target."""

    def __init__(self, user_id: int, action: str, reason: str | None = None):
        msg = f"User {user_id} does not have permission for '{action}'"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)
        self.user_id = user_id
        self.action = action
        self.reason = reason


def has_permission(role: str, action: str) -> bool:
    """Role gate only — True when *role* may perform *action*."""
    return role in ACTION_ROLES.get(action, frozenset())


def check_permission(user, action: str) -> None:
    """
    Assert the user's role allows the action.

    Raises:
        PermissionDenied: If the role is not in the action's allowed set.
    """
    if not has_permission(user.role, action):
        logger.warning("User %s (%s) denied '%s' by role gate", user.id, user.role, action)
        raise PermissionDenied(user.id, action, reason="role")


def _deny_or_not_found(user, action: str, model, pk, label: str, resolver) -> None:
    # An ADMIN sees everything, so a failed check can only mean "missing".
    if user.role == Role.ADMIN.value and (pk is None or resolver.session.get(model, pk) is None):
        raise NotFoundError(resource=label, resource_id=pk)
    logger.warning("User %s denied '%s' on %s %s", user.id, action, label, pk)
    raise PermissionDenied(user.id, action, reason="no access")


def authorize(resolver, user, action: str, *, project_id=None, task_id=None) -> None:
    """
    Run the access prerequisite for *action*, then the role gate.

    Args:
        resolver: AccessResolver bound to the request session.
        user: Authenticated User.
        action: Key of ACTION_ROLES.
        project_id: Target project for project-scoped actions.
        task_id: Target task for task-scoped actions.

    Raises:
        NotFoundError: ADMIN targeting a missing project/task.
        PermissionDenied: Access prerequisite or role gate failed.
    """
    if action not in ACTION_ROLES:
        raise ValueError(f"Unknown action: {action}")

    if action in _PROJECT_SCOPED:
        if not resolver.can_access_project(user.id, project_id):
            _deny_or_not_found(user, action, Project, project_id, "Project", resolver)
    elif action in _TASK_SCOPED:
        if not resolver.can_access_task(user.id, task_id):
            _deny_or_not_found(user, action, Task, task_id, "Task", resolver)

    check_permission(user, action)


def allowed_actions(role: str) -> set[str]:
    """The set of actions the role gate lets *role* perform."""
    return {action for action, roles in ACTION_ROLES.items() if role in roles}
