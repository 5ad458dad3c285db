"""
Audit Recorder — best-effort append of audit entries.

Called by services *after* the primary change has been committed.  A failure
here is logged and swallowed: the operation being documented has already
happened and must not be reported as failed because its trail could not be
written.
"""

import logging

from chantier.models.audit import AuditDetail, AuditLog, write_audit

logger = logging.getLogger(__name__)


def record_audit(
    session,
    *,
    actor_user_id: int,
    entity_type: str,
    entity_id,
    action: str,
    detail: AuditDetail | None = None,
    project_id: int | None = None,
) -> AuditLog | None:
    """
    Append and commit one audit entry.  Never raises.

    Returns the AuditLog on success, None when the write failed.
    """
    try:
        log = write_audit(
            session=session,
            actor_user_id=actor_user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            detail=detail,
            project_id=project_id,
        )
        session.commit()
        return log
    except Exception:
        logger.exception(
            "Failed to write audit log: %s %s/%s by user %s",
            action, entity_type, entity_id, actor_user_id,
        )
        try:
            session.rollback()
        except Exception:
            logger.exception("Rollback after audit failure also failed")
        return None


def list_project_audit(session, project_id: int, limit: int = 20) -> list[AuditLog]:
    """Most recent audit entries attached to a project."""
    return (
        session.query(AuditLog)
        .filter(AuditLog.project_id == project_id)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
