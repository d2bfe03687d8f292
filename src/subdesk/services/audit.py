"""Audit trail helpers. Rows are written in the caller's transaction."""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from subdesk.db.models import AuditLog

SYSTEM_ACTOR = "system"


def record_action(
    db: Session,
    action: str,
    entity: str,
    entity_id: Any,
    actor_id: Optional[str],
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """Append one audit row, e.g. record_action(db, "decide", "assignment", 7, "u-1")."""
    entry = AuditLog(
        action=action,
        entity=entity,
        entity_id=str(entity_id),
        actor_id=actor_id,
        details=details,
    )
    db.add(entry)
    return entry


def history(db: Session, entity: str, entity_id: Any) -> list[AuditLog]:
    """All audit rows for one entity, oldest first."""
    return list(
        db.execute(
            select(AuditLog)
            .where(AuditLog.entity == entity, AuditLog.entity_id == str(entity_id))
            .order_by(AuditLog.created_at, AuditLog.id)
        ).scalars()
    )
