"""Project domain model: projects, terrain assignments and attachment metadata."""

from datetime import datetime, timezone
from enum import Enum

from chantier.models import db


class ProjectStatus(str, Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    DELIVERED = "DELIVERED"
    CLOSED = "CLOSED"


PROJECT_STATUSES = {s.value for s in ProjectStatus}


class Project(db.Model):
    """A construction site tracked from planning to closure."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    client = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)
    tags = db.Column(db.String(500), nullable=True, comment="Comma-separated labels")
    status = db.Column(db.String(30), nullable=False, default=ProjectStatus.PLANNED.value)
    progress = db.Column(db.Integer, nullable=False, default=0)
    budget = db.Column(db.Float, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)

    # ── Geocoding ──
    location = db.Column(db.String(300), nullable=True, comment="Free-text address")
    coordinates = db.Column(
        db.String(200), nullable=True,
        comment='Free-text coordinates, e.g. "33.5731°N, 7.5898°W"',
    )
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    # ── Access relationships ──
    created_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True,
    )
    bureau_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    created_by = db.relationship("User", foreign_keys=[created_by_id])
    bureau = db.relationship("User", foreign_keys=[bureau_id])
    assignments = db.relationship(
        "ProjectAssignment", back_populates="project", lazy="selectin",
        cascade="all, delete-orphan",
    )
    tasks = db.relationship(
        "Task", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    attachments = db.relationship(
        "Attachment", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    __table_args__ = (
        db.Index("ix_projects_updated_at", "updated_at"),
    )

    @property
    def terrain_agent_ids(self) -> list[int]:
        return sorted(a.user_id for a in self.assignments)

    def to_dict(self) -> dict:
        """Serialize core project fields for API responses."""
        return {
            "id": self.id,
            "title": self.title,
            "client": self.client,
            "description": self.description,
            "tags": [t.strip() for t in (self.tags or "").split(",") if t.strip()],
            "status": self.status,
            "progress": self.progress,
            "budget": self.budget,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "location": self.location,
            "coordinates": self.coordinates,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "created_by": self.created_by.to_brief() if self.created_by else None,
            "bureau": self.bureau.to_brief() if self.bureau else None,
            "terrain_agents": [a.user.to_brief() for a in self.assignments if a.user],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.title}>"


class ProjectAssignment(db.Model):
    """Grants a TERRAIN user visibility into one project."""

    __tablename__ = "project_assignments"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    assigned_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    project = db.relationship("Project", back_populates="assignments")
    user = db.relationship("User", back_populates="assignments")

    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_project_assignment"),
        db.Index("ix_project_assignments_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<ProjectAssignment project={self.project_id} user={self.user_id}>"


class Attachment(db.Model):
    """File reference attached to a project; the bytes live in external storage."""

    __tablename__ = "attachments"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    filename = db.Column(db.String(300), nullable=False)
    url = db.Column(db.String(1000), nullable=False)
    uploaded_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    project = db.relationship("Project", back_populates="attachments")
    uploaded_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "filename": self.filename,
            "url": self.url,
            "uploaded_by": self.uploaded_by.to_brief() if self.uploaded_by else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
