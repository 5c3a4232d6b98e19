"""
AuditEvent model for the production audit trail.

Every write that affects genealogy (receipt, batch creation, production
runs, daily log changes, administrative deletions) records one event.
"""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from .base import BaseModel
from bakery_trace.utils.datetime_utils import utc_now


class AuditEvent(BaseModel):
    """
    AuditEvent model.

    Attributes:
        occurred_at: When the action happened
        action: Action code (e.g., "CREATE_BATCH")
        details: Human-readable description
        user: Operator responsible, or "system"
        entity_type: Optional affected entity type (e.g., "IntermediateBatch")
        entity_id: Optional affected entity id
    """

    __tablename__ = "audit_events"

    occurred_at = Column(DateTime, nullable=False, default=utc_now)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=False)
    user = Column(String(100), nullable=False, default="system")
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(Integer, nullable=True)

    __table_args__ = (
        Index("idx_audit_event_occurred_at", "occurred_at"),
        Index("idx_audit_event_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"AuditEvent(id={self.id}, action='{self.action}')"
