"""
Auth Models — users and their single, closed-set role.

A user holds exactly one role.  The role is assigned at creation and only
changes through an ADMIN-only path; request handling treats it as fixed.
"""

from datetime import datetime, timezone
from enum import Enum

from chantier.models import db


class Role(str, Enum):
    """Closed role vocabulary used by every access predicate."""
    ADMIN = "ADMIN"
    BUREAU = "BUREAU"
    TERRAIN = "TERRAIN"


ROLE_NAMES = {r.value for r in Role}


# ═══════════════════════════════════════════════════════════════
# USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), nullable=False, unique=True)
    name = db.Column(db.String(200), nullable=False)
    password_hash = db.Column(db.String(256))
    role = db.Column(
        db.String(20), nullable=False, default=Role.TERRAIN.value,
        comment="ADMIN | BUREAU | TERRAIN",
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_users_role", "role"),
    )

    # Relationships
    assignments = db.relationship(
        "ProjectAssignment", back_populates="user", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_counts=False):
        d = {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_counts:
            from chantier.models.project import Project
            from chantier.models.task import Task

            d["counts"] = {
                "projects_as_bureau": Project.query.filter_by(bureau_id=self.id).count(),
                "projects_as_terrain": self.assignments.count(),
                "tasks_assigned": Task.query.filter_by(assignee_id=self.id).count(),
            }
        return d

    def to_brief(self):
        """Compact form embedded in project/task payloads."""
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role}

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.role})>"
