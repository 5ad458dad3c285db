"""
Project Access Middleware — identity and row-level access decorators.

    @require_auth                       JWT user must exist → g.current_user
    @require_project_access("pid")      ... and may see project <pid>
    @require_task_access("tid")         ... and may see task <tid>

Failures raise domain exceptions; the app-level error handlers turn them
into 401 / 403 / 404 JSON responses.  A missing target is only reported as
404 to an ADMIN (who could see it if it existed); every other user gets
403 so existence is not disclosed.

Usage:
    @bp.route("/projects/<int:project_id>")
    @require_project_access("project_id")
    def get_project(project_id):
        user = g.current_user
        ...
"""

import functools
import logging

from flask import g, request

from chantier.core.exceptions import AuthenticationRequired, NotFoundError
from chantier.models import db
from chantier.models.auth import Role, User
from chantier.services.access_resolver import AccessResolver
from chantier.services.permission import PermissionDenied

logger = logging.getLogger(__name__)


def get_resolver() -> AccessResolver:
    """Request-scoped AccessResolver bound to the Flask-SQLAlchemy session."""
    resolver = getattr(g, "access_resolver", None)
    if resolver is None:
        resolver = AccessResolver(db.session)
        g.access_resolver = resolver
    return resolver


def _load_current_user() -> User:
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is None:
        raise AuthenticationRequired()
    user = db.session.get(User, user_id)
    if user is None:
        logger.warning("Token subject %s no longer exists", user_id)
        raise AuthenticationRequired("Unknown user")
    g.current_user = user
    return user


def _route_param(kwargs, param_name):
    value = kwargs.get(param_name)
    if value is None:
        value = (request.view_args or {}).get(param_name)
    return value


def deny_access(user: User, label: str, pk) -> None:
    """Raise 404 for an ADMIN (the target is missing), 403 for everyone else."""
    if user.role == Role.ADMIN.value:
        raise NotFoundError(resource=label, resource_id=pk)
    logger.warning("User %s denied read access to %s %s", user.id, label, pk)
    raise PermissionDenied(user.id, f"{label.lower()}.read", reason="no access")


def require_auth(f):
    """Decorator: the request must carry a valid token for an existing user."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _load_current_user()
        return f(*args, **kwargs)
    return decorated


def require_project_access(param_name: str = "project_id"):
    """
    Decorator: authenticate, then require visibility of the project named
    by the given route parameter.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = _load_current_user()
            project_id = _route_param(kwargs, param_name)
            if not get_resolver().can_access_project(user.id, project_id):
                deny_access(user, "Project", project_id)
            return f(*args, **kwargs)
        return decorated
    return decorator


def require_task_access(param_name: str = "task_id"):
    """Decorator: like require_project_access, for the task's project."""
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = _load_current_user()
            task_id = _route_param(kwargs, param_name)
            if not get_resolver().can_access_task(user.id, task_id):
                deny_access(user, "Task", task_id)
            return f(*args, **kwargs)
        return decorated
    return decorator
