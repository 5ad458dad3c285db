"""Shared utility functions for services and blueprints.

parse_date_input:    ISO / DD.MM.YYYY date parsing, raises ValueError on bad input
parse_bounded_int:   integer coercion with inclusive bounds (progress 0–100)
db_commit_or_error:  commit the session or return a ready-made error response
get_json_body:       request JSON object or {}
"""
import logging
from datetime import date, datetime

from flask import request

from chantier.core.exceptions import ValidationError
from chantier.models import db
from chantier.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS, DD.MM.YYYY, date objects.
    Empty input returns None.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError(
            "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
        ) from exc


def parse_bounded_int(value, *, minimum: int, maximum: int) -> int:
    """Coerce *value* to int within [minimum, maximum]; raise ValueError otherwise."""
    if isinstance(value, bool):
        raise ValueError("Expected an integer")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Expected an integer") from exc
    if isinstance(value, float) and value != number:
        raise ValueError("Expected an integer")
    if number < minimum or number > maximum:
        raise ValueError(f"Must be between {minimum} and {maximum}")
    return number


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure — ready for ``return``.

    Usage::

        err = db_commit_or_error()
        if err:
            return err

    IntegrityError → 409 (duplicate / constraint violation)
    OperationalError → 500 (connection / lock issues)
    Other → 500 (unexpected)
    """
    from sqlalchemy.exc import IntegrityError, OperationalError

    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return api_error(E.DATABASE, "Database error")
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return api_error(E.DATABASE, "Database error")


def get_json_body() -> dict:
    """Request JSON object; raises ValidationError when the body is not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
