"""Task and comment models."""

from datetime import datetime, timezone
from enum import Enum

from chantier.models import db


class TaskStatus(str, Enum):
    TODO = "TODO"
    DOING = "DOING"
    REVIEW = "REVIEW"
    DONE = "DONE"
    BLOCKED = "BLOCKED"


TASK_STATUSES = {s.value for s in TaskStatus}


class Task(db.Model):
    """Unit of work inside exactly one project; has no ACL of its own."""

    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=TaskStatus.TODO.value)
    progress = db.Column(db.Integer, nullable=False, default=0)
    assignee_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    due_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    project = db.relationship("Project", back_populates="tasks")
    assignee = db.relationship("User")
    comments = db.relationship(
        "Comment", back_populates="task", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self, include_project=False) -> dict:
        d = {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "status": self.status,
            "progress": self.progress,
            "assignee": self.assignee.to_brief() if self.assignee else None,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "comment_count": self.comments.count(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_project and self.project is not None:
            d["project"] = {"id": self.project.id, "title": self.project.title,
                            "status": self.project.status}
        return d

    def __repr__(self) -> str:
        return f"<Task {self.id}: {self.title}>"


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    body = db.Column(db.Text, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    task = db.relationship("Task", back_populates="comments")
    author = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "author": self.author.to_brief() if self.author else None,
            "body": self.body,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
