"""
Chantier Tracker
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for create/update/delete events.

Detail payloads are a closed set of shapes, one per action kind:
    - CreateDetail  — title of the new entity plus optional extra facts
    - UpdateDetail  — status and/or progress transitions
    - DeleteDetail  — title of the removed entity
Each serialises with a ``kind`` tag so readers can dispatch on it.
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Union

from chantier.models import db

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {"project", "task", "user"}

AUDIT_ACTIONS = {"create", "update", "delete"}


# ── Detail shapes ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FieldChange:
    old: Any
    new: Any

    def to_dict(self) -> dict:
        return {"from": self.old, "to": self.new}


@dataclass(frozen=True)
class CreateDetail:
    title: str
    extra: dict = field(default_factory=dict)
    kind: str = field(default="create", init=False)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "title": self.title, **self.extra}


@dataclass(frozen=True)
class UpdateDetail:
    status: FieldChange | None = None
    progress: FieldChange | None = None
    kind: str = field(default="update", init=False)

    def to_dict(self) -> dict:
        d: dict = {"kind": self.kind}
        if self.status is not None:
            d["status"] = self.status.to_dict()
        if self.progress is not None:
            d["progress"] = self.progress.to_dict()
        return d


@dataclass(frozen=True)
class DeleteDetail:
    title: str
    kind: str = field(default="delete", init=False)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "title": self.title}


AuditDetail = Union[CreateDetail, UpdateDetail, DeleteDetail]


def diff_status_progress(old: dict, new: dict) -> UpdateDetail:
    """Build an UpdateDetail from before/after ``{status, progress}`` snapshots."""
    status = None
    progress = None
    if new.get("status") is not None and old.get("status") != new.get("status"):
        status = FieldChange(old.get("status"), new["status"])
    if new.get("progress") is not None and old.get("progress") != new.get("progress"):
        progress = FieldChange(old.get("progress"), new["progress"])
    return UpdateDetail(status=status, progress=progress)


class AuditLog(db.Model):
    """
    Immutable audit trail for every tracked mutation.

    ``project_id`` is a plain indexed integer rather than a foreign key so
    the history of a deleted project is kept exactly as written.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_project", "project_id"),
        db.Index("idx_audit_actor", "actor_user_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    actor_user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id"),
        nullable=False,
    )
    entity_type = db.Column(
        db.String(30), nullable=False,
        comment="project | task | user",
    )
    entity_id = db.Column(db.String(36), nullable=False)
    action = db.Column(
        db.String(30), nullable=False,
        comment="create | update | delete",
    )
    detail_json = db.Column(db.Text, default="{}")
    project_id = db.Column(db.Integer, nullable=True)

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    actor = db.relationship("User")

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def detail(self) -> dict:
        """Deserialise *detail_json* to a Python dict."""
        try:
            return json.loads(self.detail_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor": self.actor.to_brief() if self.actor else None,
            "actor_user_id": self.actor_user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "detail": self.detail,
            "project_id": self.project_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    session,
    actor_user_id: int,
    entity_type: str,
    entity_id,
    action: str,
    detail: AuditDetail | None = None,
    project_id: int | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.

    Raises ValueError for an unknown entity type or action.
    """
    if entity_type not in AUDIT_ENTITY_TYPES:
        raise ValueError(f"Unknown audit entity type: {entity_type}")
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")

    log = AuditLog(
        actor_user_id=actor_user_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        detail_json=json.dumps(detail.to_dict() if detail else {}, default=str),
        project_id=project_id,
    )
    session.add(log)
    session.flush()
    return log
