"""
User Service — account creation and listing.

Accounts are created by an ADMIN; there is no self-service signup.
"""

import logging

from email_validator import EmailNotValidError, validate_email

from chantier.core.exceptions import ConflictError, ValidationError
from chantier.models import db
from chantier.models.audit import CreateDetail
from chantier.models.auth import ROLE_NAMES, User
from chantier.utils.crypto import hash_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _normalize_role(value) -> str:
    role = str(value or "").strip().upper()
    if role not in ROLE_NAMES:
        raise ValidationError("Invalid role", {"role": f"must be one of {sorted(ROLE_NAMES)}"})
    return role


def create_user(*, data: dict) -> tuple[User, CreateDetail]:
    """Validate and flush a new user. Raises ValidationError / ConflictError."""
    errors = {}

    email = str(data.get("email", "") or "").strip()
    try:
        email = validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        errors["email"] = str(e)

    name = str(data.get("name", "") or "").strip()
    if not name:
        errors["name"] = "required"

    password = data.get("password") or ""
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"must be at least {MIN_PASSWORD_LENGTH} characters"

    role = None
    try:
        role = _normalize_role(data.get("role"))
    except ValidationError as e:
        errors.update(e.details)

    if errors:
        raise ValidationError("Invalid user data", errors)

    if User.query.filter(db.func.lower(User.email) == email.lower()).first():
        raise ConflictError(resource="User", field="email", value=email)

    user = User(email=email, name=name, role=role, password_hash=hash_password(password))
    db.session.add(user)
    db.session.flush()
    logger.info("User %s created with role %s", user.id, role)

    return user, CreateDetail(title=user.name, extra={"email": user.email, "role": role})


def list_users(role: str | None = None) -> list[User]:
    query = User.query
    if role:
        query = query.filter(User.role == _normalize_role(role))
    return query.order_by(User.name.asc(), User.id.asc()).all()
