"""Audit Service - records the production audit trail.

Every write that changes genealogy records one AuditEvent inside the same
session, so the audit row commits or rolls back together with the change.
Displaying the trail is left to the host application; this module only
records and lists events.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from bakery_trace.models import AuditEvent
from bakery_trace.services.database import session_scope

# Action codes
RECEIVE_GOODS = "RECEIVE_GOODS"
CREATE_RECEIVING_REPORT = "CREATE_RECEIVING_REPORT"
CORRECT_LOT_CODE = "CORRECT_LOT_CODE"
DELETE_LOT = "DELETE_LOT"
DELETE_RECEIVING_REPORT = "DELETE_RECEIVING_REPORT"
UPDATE_DAILY_LOG = "UPDATE_DAILY_LOG"
CLEAR_DAILY_LOG = "CLEAR_DAILY_LOG"
CREATE_BATCH = "CREATE_BATCH"
DELETE_BATCH = "DELETE_BATCH"
CREATE_PRODUCTION_RUN = "CREATE_PRODUCTION_RUN"
DELETE_PRODUCTION_RUN = "DELETE_PRODUCTION_RUN"
ADD_CATALOG_ITEM = "ADD_CATALOG_ITEM"


def record_event(
    session: Session,
    action: str,
    details: str,
    user: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
) -> AuditEvent:
    """Record one audit event in the caller's session.

    Args:
        session: Session of the write being audited (required)
        action: Action code, e.g. CREATE_BATCH
        details: Human-readable description
        user: Operator responsible (defaults to "system")
        entity_type: Optional affected entity type name
        entity_id: Optional affected entity id

    Returns:
        The pending AuditEvent
    """
    event = AuditEvent(
        action=action,
        details=details,
        user=user or "system",
        entity_type=entity_type,
        entity_id=entity_id,
    )
    session.add(event)
    return event


def get_audit_events(
    *,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """List audit events, newest first.

    Args:
        entity_type: Optional filter by entity type
        entity_id: Optional filter by entity id
        action: Optional filter by action code
        limit: Maximum number of events (default 100)
        session: Optional database session

    Returns:
        List of audit event dictionaries
    """
    if session is not None:
        return _get_audit_events_impl(entity_type, entity_id, action, limit, session)
    with session_scope() as session:
        return _get_audit_events_impl(entity_type, entity_id, action, limit, session)


def _get_audit_events_impl(
    entity_type: Optional[str],
    entity_id: Optional[int],
    action: Optional[str],
    limit: int,
    session: Session,
) -> List[Dict[str, Any]]:
    query = session.query(AuditEvent)
    if entity_type is not None:
        query = query.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditEvent.entity_id == entity_id)
    if action is not None:
        query = query.filter(AuditEvent.action == action)
    query = query.order_by(AuditEvent.occurred_at.desc(), AuditEvent.id.desc()).limit(limit)
    return [event.to_dict() for event in query.all()]
