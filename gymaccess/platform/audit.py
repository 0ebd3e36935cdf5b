"""
Audit events for privileged writes.

CRITICAL REQUIREMENTS:
- Audit events are append-only (no UPDATE/DELETE)
- Every privileged write appends an event inside its own transaction
- A failed append MUST fall back to the secondary logger and never
  abort the write it is attached to

Privileged writes that are audited:
- Pass issuance
- Gym updates
- Staff account creation
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import Column, String, Integer, DateTime, Text, Index
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gymaccess.db_base import Base

logger = logging.getLogger(__name__)
fallback_logger = logging.getLogger("audit.fallback")


class AuditEventType(str, Enum):
    """Enumeration of all auditable actions."""
    PASS_ISSUED = "pass_issued"
    GYM_UPDATED = "gym_updated"
    STAFF_CREATED = "staff_created"


class AuditEvent(Base):
    """
    Audit event database model.

    CRITICAL: This table is append-only. Rows are never updated or deleted.
    """
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(50), nullable=False, index=True)
    creator_id = Column(String(255), nullable=True, index=True)
    target_id = Column(String(255), nullable=True)
    gym_id = Column(Integer, nullable=True, index=True)
    gym_chain_id = Column(Integer, nullable=True, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_audit_events_chain_created", "gym_chain_id", "created_at"),
    )


@dataclass(frozen=True)
class AuditEntry:
    """An audit event before it is written."""
    event_type: AuditEventType
    creator_id: Optional[str]
    target_id: Optional[str]
    description: str
    gym_id: Optional[int] = None
    gym_chain_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type.value,
            "creator_id": self.creator_id,
            "target_id": self.target_id,
            "description": self.description,
            "gym_id": self.gym_id,
            "gym_chain_id": self.gym_chain_id,
        }


def append_audit_event(db: Session, entry: AuditEntry) -> Optional[AuditEvent]:
    """
    Append an audit event to the caller's open transaction.

    The insert runs in a savepoint and is committed together with the write
    it describes. On failure the savepoint is rolled back, the entry goes to
    the fallback logger and None is returned.

    Args:
        db: SQLAlchemy Session with the privileged write in progress
        entry: The audit entry to append

    Returns:
        The pending AuditEvent row, or None if fallback was used
    """
    try:
        with db.begin_nested():
            event = AuditEvent(**entry.to_dict())
            db.add(event)
            db.flush()
    except SQLAlchemyError as e:
        _write_fallback_log(entry, str(e))
        return None

    logger.info(
        "Audit event recorded",
        extra={
            "audit_id": event.id,
            "event_type": entry.event_type.value,
            "creator_id": entry.creator_id,
            "target_id": entry.target_id,
        }
    )
    return event


def _write_fallback_log(entry: AuditEntry, error_reason: str) -> None:
    """Write audit entry to fallback logger when the primary store fails."""
    fallback_entry = entry.to_dict()
    fallback_entry["timestamp"] = datetime.now(timezone.utc).isoformat()
    fallback_entry["fallback_reason"] = error_reason
    fallback_logger.error(
        "Audit log fallback",
        extra={"audit_entry": json.dumps(fallback_entry)},
    )
