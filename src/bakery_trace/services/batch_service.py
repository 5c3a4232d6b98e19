"""Batch Service - dough and filling batch creation.

Creating a batch is an explicit two-step transaction inside one session:

1. ``_insert_batch_with_links``: insert the IntermediateBatch and one
   BatchIngredientLink per consumed lot.
2. ``_confirm_active_lots``: upsert the daily active log so each consumed
   lot becomes the active lot of its ingredient type for the production day.

Making a batch is how operators confirm the day's lot selections, so step 2
is not optional. Both steps commit or roll back together.

A batch must consume at least one lot. Unknown lot ids are rejected rather
than silently dropped, since a link to a lot that never existed would look
like a deleted lot in every later trace.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from bakery_trace.models import (
    BatchIngredientLink,
    BatchType,
    IngredientLot,
    IntermediateBatch,
    RunBatchLink,
)
from bakery_trace.services import audit_service
from bakery_trace.services.active_lot_service import record_active_lot
from bakery_trace.services.database import session_scope
from bakery_trace.services.entity_store import EntityStore
from bakery_trace.services.exceptions import (
    EmptyBatchError,
    IngredientLotNotFound,
    IntermediateBatchNotFound,
    ValidationError,
)
from bakery_trace.services.logging_utils import get_service_logger, log_operation
from bakery_trace.utils.constants import (
    DOUGH_CODE_PREFIX,
    FILLING_CODE_PREFIX,
    MAX_CODE_LENGTH,
)
from bakery_trace.utils.datetime_utils import as_utc_naive, today, utc_now

logger = get_service_logger(__name__)


def _unique(ids: Iterable[int]) -> List[int]:
    seen = set()
    result = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


# =============================================================================
# Creation
# =============================================================================


def create_intermediate_batch(
    code: str,
    batch_type: BatchType,
    name: str,
    created_by: str,
    lot_ids: Iterable[int],
    *,
    made_at: Optional[datetime] = None,
    active_date: Optional[date] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Create a dough or filling batch from ingredient lots.

    Args:
        code: Human batch code (e.g., "DOUGH-101"); not required to be unique
        batch_type: BatchType.DOUGH or BatchType.FILLING (or its string value)
        name: Recipe/product name of the batch
        created_by: Operator making the batch
        lot_ids: Consumed lots; duplicates are collapsed
        made_at: When the batch was made (defaults to now)
        active_date: Production day whose daily log is updated (defaults to
                     the date of made_at, or today)
        session: Optional database session

    Returns:
        Dict with the batch fields plus "lot_ids" and "active_log" (list of
        {ingredient_type_id, lot_id} entries written to the daily log)

    Raises:
        EmptyBatchError: If no lots are given
        IngredientLotNotFound: If any lot id doesn't exist
        ValidationError: If code/name/operator are blank or batch_type is unknown
    """
    if active_date is None:
        active_date = made_at.date() if made_at is not None else today()
    if session is not None:
        return _create_intermediate_batch_impl(
            code, batch_type, name, created_by, lot_ids, made_at, active_date, session
        )
    with session_scope() as session:
        return _create_intermediate_batch_impl(
            code, batch_type, name, created_by, lot_ids, made_at, active_date, session
        )


def _create_intermediate_batch_impl(
    code, batch_type, name, created_by, lot_ids, made_at, active_date, session
) -> Dict[str, Any]:
    errors = []
    if not code or not code.strip():
        errors.append("Batch code is required")
    elif len(code) > MAX_CODE_LENGTH:
        errors.append(f"Batch code must be at most {MAX_CODE_LENGTH} characters")
    if not name or not name.strip():
        errors.append("Batch name is required")
    if not created_by or not created_by.strip():
        errors.append("Operator is required")
    try:
        batch_type = BatchType(batch_type)
    except ValueError:
        errors.append(f"Unknown batch type '{batch_type}'")
    if errors:
        raise ValidationError(errors)

    lot_ids = _unique(lot_ids)
    if not lot_ids:
        log_operation(
            logger,
            operation="create_intermediate_batch",
            outcome="empty_lot_set",
            level=logging.WARNING,
            code=code,
        )
        raise EmptyBatchError(code)

    store = EntityStore(session)
    lots = []
    for lot_id in lot_ids:
        lot = store.get_ingredient_lot(lot_id)
        if lot is None:
            raise IngredientLotNotFound(lot_id)
        lots.append(lot)

    batch = _insert_batch_with_links(
        store, code, batch_type, name, created_by, lots, as_utc_naive(made_at or utc_now())
    )
    confirmed = _confirm_active_lots(store, active_date, lots, created_by)

    audit_service.record_event(
        session,
        audit_service.CREATE_BATCH,
        f"Created {batch_type.value} batch {batch.code}",
        user=created_by,
        entity_type="IntermediateBatch",
        entity_id=batch.id,
    )
    log_operation(
        logger,
        operation="create_intermediate_batch",
        outcome="success",
        batch_id=batch.id,
        batch_type=batch_type.value,
        lot_count=len(lots),
    )

    result = batch.to_dict()
    result["active_log"] = confirmed
    return result


def _insert_batch_with_links(
    store: EntityStore,
    code: str,
    batch_type: BatchType,
    name: str,
    created_by: str,
    lots: List[IngredientLot],
    made_at: datetime,
) -> IntermediateBatch:
    """Step 1: insert the batch and one link row per consumed lot."""
    batch = IntermediateBatch(
        code=code,
        batch_type=batch_type.value,
        name=name,
        made_at=made_at,
        created_by=created_by,
    )
    for lot in lots:
        batch.ingredient_links.append(BatchIngredientLink(lot_id=lot.id))
    return store.insert(batch)


def _confirm_active_lots(
    store: EntityStore, active_date: date, lots: List[IngredientLot], user: str
) -> List[Dict[str, int]]:
    """Step 2: mark each consumed lot active for its ingredient type.

    If a batch consumes two lots of the same type, the later one in the
    request wins, matching the order the upserts are applied.
    """
    confirmed = {}
    for lot in lots:
        record_active_lot(store, active_date, lot, user)
        confirmed[lot.ingredient_type_id] = lot.id
    return [
        {"ingredient_type_id": type_id, "lot_id": lot_id}
        for type_id, lot_id in confirmed.items()
    ]


# =============================================================================
# Queries
# =============================================================================


def get_intermediate_batch(batch_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Get a batch by ID, including its lot ids.

    Raises:
        IntermediateBatchNotFound: If the batch doesn't exist
    """
    if session is not None:
        return _get_intermediate_batch_impl(batch_id, session)
    with session_scope() as session:
        return _get_intermediate_batch_impl(batch_id, session)


def _get_intermediate_batch_impl(batch_id: int, session: Session) -> Dict[str, Any]:
    batch = EntityStore(session).get_intermediate_batch(batch_id)
    if batch is None:
        raise IntermediateBatchNotFound(batch_id)
    return batch.to_dict()


def get_batches(
    *,
    batch_type: Optional[BatchType] = None,
    on_date: Optional[date] = None,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """List batches, optionally of one type and/or made on one day.

    Returns:
        Batch dictionaries ordered by made_at then insertion sequence
    """
    if session is not None:
        return _get_batches_impl(batch_type, on_date, session)
    with session_scope() as session:
        return _get_batches_impl(batch_type, on_date, session)


def _get_batches_impl(batch_type, on_date, session) -> List[Dict[str, Any]]:
    predicate = None
    if on_date is not None:
        predicate = lambda batch: batch.made_at.date() == on_date  # noqa: E731
    batches = EntityStore(session).list_intermediate_batches(predicate, batch_type=batch_type)
    return [batch.to_dict() for batch in batches]


def generate_batch_code(batch_type: BatchType, session: Optional[Session] = None) -> str:
    """Suggest the next code for a batch type, e.g. "DOUGH-007".

    The suggestion counts existing batches of the type; operators may
    overwrite it, so it is not a uniqueness guarantee.
    """
    if session is not None:
        return _generate_batch_code_impl(batch_type, session)
    with session_scope() as session:
        return _generate_batch_code_impl(batch_type, session)


def _generate_batch_code_impl(batch_type, session) -> str:
    batch_type = BatchType(batch_type)
    prefix = DOUGH_CODE_PREFIX if batch_type == BatchType.DOUGH else FILLING_CODE_PREFIX
    count = (
        session.query(func.count(IntermediateBatch.id))
        .filter(IntermediateBatch.batch_type == batch_type.value)
        .scalar()
    )
    return f"{prefix}-{count + 1:03d}"


# =============================================================================
# Administrative deletion
# =============================================================================


def delete_intermediate_batch(
    batch_id: int, user: Optional[str] = None, session: Optional[Session] = None
) -> None:
    """
    Delete a batch and its lot links (administrative).

    Production runs that consumed the batch keep their link rows; traces
    show the reference as missing.

    Raises:
        IntermediateBatchNotFound: If the batch doesn't exist
    """
    if session is not None:
        return _delete_intermediate_batch_impl(batch_id, user, session)
    with session_scope() as session:
        return _delete_intermediate_batch_impl(batch_id, user, session)


def _delete_intermediate_batch_impl(batch_id, user, session) -> None:
    batch = EntityStore(session).get_intermediate_batch(batch_id)
    if batch is None:
        raise IntermediateBatchNotFound(batch_id)

    used_by = session.query(RunBatchLink).filter(RunBatchLink.batch_id == batch_id).count()
    code = batch.code
    session.delete(batch)
    session.flush()

    audit_service.record_event(
        session,
        audit_service.DELETE_BATCH,
        f"Deleted batch {code}",
        user=user,
        entity_type="IntermediateBatch",
        entity_id=batch_id,
    )
    log_operation(
        logger,
        operation="delete_intermediate_batch",
        outcome="deleted_consumed_batch" if used_by else "success",
        level=logging.WARNING if used_by else logging.INFO,
        batch_id=batch_id,
        link_count=used_by,
    )
