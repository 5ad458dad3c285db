"""JSON error bodies for the chantier API.

Every error response has the same shape::

    {"error": "<message>", "code": "ERR_...", "details": {...}}

Domain exceptions are mapped once, in ``register_error_handlers``; views
and services raise, they do not build error responses themselves.  The
only direct caller of ``api_error`` outside this module is
``db_commit_or_error``, which turns commit failures into 409 / 500.
"""

from __future__ import annotations

import logging

from flask import jsonify, request

from chantier.core.exceptions import (
    AuthenticationRequired,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from chantier.models import db
from chantier.services.permission import PermissionDenied

logger = logging.getLogger(__name__)


class E:
    """Machine-readable error codes."""

    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"
    NOT_FOUND = "ERR_NOT_FOUND"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    METHOD_NOT_ALLOWED = "ERR_METHOD_NOT_ALLOWED"
    RATE_LIMITED = "ERR_RATE_LIMITED"
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


_STATUS: dict[str, int] = {
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.VALIDATION_INVALID: 400,
    E.CONFLICT_DUPLICATE: 409,
    E.METHOD_NOT_ALLOWED: 405,
    E.RATE_LIMITED: 429,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}

# Exception type → (code, rollback the session first)
_DOMAIN_ERRORS: dict[type[Exception], tuple[str, bool]] = {
    AuthenticationRequired: (E.UNAUTHORIZED, False),
    PermissionDenied: (E.FORBIDDEN, False),
    NotFoundError: (E.NOT_FOUND, False),
    ValidationError: (E.VALIDATION_INVALID, True),
    ConflictError: (E.CONFLICT_DUPLICATE, True),
}

FORBIDDEN_MESSAGE = "You do not have permission to perform this action"


def api_error(code: str, message: str, *, details: dict | None = None, **extra):
    """Return ``(jsonify(body), status)`` for one of the ``E`` codes."""
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    body.update(extra)
    return jsonify(body), _STATUS.get(code, 400)


def _domain_error_response(error: Exception):
    code, rollback = next(v for t, v in _DOMAIN_ERRORS.items() if isinstance(error, t))
    if rollback:
        db.session.rollback()
    if code == E.FORBIDDEN:
        # The denial reason stays in the logs; the client only learns it was refused.
        logger.info("Forbidden on %s %s: %s", request.method, request.path, error)
        return api_error(code, FORBIDDEN_MESSAGE)
    return api_error(code, str(error), details=getattr(error, "details", None))


def register_error_handlers(app) -> None:
    """Map domain exceptions and HTTP errors to JSON bodies."""
    for exc_type in _DOMAIN_ERRORS:
        app.register_error_handler(exc_type, _domain_error_response)

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", path=request.path)

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed")

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", retry_after=e.description)

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error on %s %s", request.method, request.path,
                     exc_info=getattr(e, "original_exception", None) or True)
        db.session.rollback()
        return api_error(E.INTERNAL, "Internal server error")
