"""Active Lot Service - which received lot is in use on a given day.

Resolution policy for (date, ingredient type), in order:

1. A daily active log entry for exactly that date and type wins. Its lot is
   returned as-is: no freshness or best-before re-check.
2. Otherwise carry forward the most recently received lot of the type,
   regardless of date: received_at descending, ties broken by insertion
   sequence descending (the lot recorded later wins).
3. No lot of the type at all -> None. This is not an error; batch creation
   treats it as "ingredient unavailable today".

A log entry whose lot has since been deleted is treated as absent and
resolution falls through to step 2.

The resolver is also how batch creation pre-selects lots for today. The
operator may override any suggestion; the override is what gets linked and
written back to the log (see batch_service).
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from bakery_trace.models import IngredientLot
from bakery_trace.services import audit_service
from bakery_trace.services.database import session_scope
from bakery_trace.services.entity_store import EntityStore
from bakery_trace.services.exceptions import (
    IngredientLotNotFound,
    IngredientTypeNotFound,
    IngredientUnavailableError,
    ValidationError,
)
from bakery_trace.services.logging_utils import get_service_logger, log_operation
from bakery_trace.utils.datetime_utils import today

logger = get_service_logger(__name__)

RESOLVED_FROM_DAILY_LOG = "daily_log"
RESOLVED_FROM_CARRY_FORWARD = "carry_forward"
RESOLVED_FROM_OVERRIDE = "override"


def find_active_lot(
    store: EntityStore, on_date: date, ingredient_type_id: int
) -> Optional[Tuple[IngredientLot, str]]:
    """Resolve the active lot against an explicit store.

    Returns:
        (lot, resolved_from) or None when the type has no lots at all
    """
    entry = store.get_daily_active_log_entry(on_date, ingredient_type_id)
    if entry is not None:
        lot = store.get_ingredient_lot(entry.active_lot_id)
        if lot is not None:
            return lot, RESOLVED_FROM_DAILY_LOG
        log_operation(
            logger,
            operation="resolve_active_lot",
            outcome="dangling_log_entry",
            level=logging.WARNING,
            log_date=on_date.isoformat(),
            ingredient_type_id=ingredient_type_id,
            lot_id=entry.active_lot_id,
        )

    # Ordered by received_at then insertion sequence, so the last lot is the
    # latest receipt and the later insert among equal timestamps.
    lots = store.list_ingredient_lots(ingredient_type_id=ingredient_type_id)
    if not lots:
        return None
    return lots[-1], RESOLVED_FROM_CARRY_FORWARD


def _lot_result(lot: IngredientLot, resolved_from: str) -> Dict[str, Any]:
    result = lot.to_dict()
    result["resolved_from"] = resolved_from
    return result


def resolve_active_lot(
    on_date: date,
    ingredient_type_id: int,
    session: Optional[Session] = None,
) -> Optional[Dict[str, Any]]:
    """
    Determine which lot of an ingredient type is in use on a date.

    Args:
        on_date: Production day
        ingredient_type_id: Ingredient type to resolve
        session: Optional database session

    Returns:
        The lot as a dictionary plus "resolved_from" ("daily_log" or
        "carry_forward"), or None if no lot of the type exists

    Example:
        >>> lot = resolve_active_lot(date(2025, 1, 5), sugar_id)
        >>> lot["batch_code"], lot["resolved_from"]
        ('SUG-0103', 'carry_forward')
    """
    if session is not None:
        return _resolve_active_lot_impl(on_date, ingredient_type_id, session)
    with session_scope() as session:
        return _resolve_active_lot_impl(on_date, ingredient_type_id, session)


def _resolve_active_lot_impl(on_date, ingredient_type_id, session) -> Optional[Dict[str, Any]]:
    found = find_active_lot(EntityStore(session), on_date, ingredient_type_id)
    if found is None:
        log_operation(
            logger,
            operation="resolve_active_lot",
            outcome="not_found",
            level=logging.DEBUG,
            log_date=on_date.isoformat(),
            ingredient_type_id=ingredient_type_id,
        )
        return None
    return _lot_result(*found)


def set_active_lot(
    on_date: date,
    ingredient_type_id: int,
    lot_id: int,
    user: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Explicitly set the active lot for an ingredient on a day.

    Replaces any existing selection for (on_date, ingredient_type_id).

    Args:
        on_date: Production day
        ingredient_type_id: Ingredient type
        lot_id: Lot to mark active; must be a lot of that ingredient type
        user: Operator making the change
        session: Optional database session

    Returns:
        The daily log entry as a dictionary

    Raises:
        IngredientTypeNotFound: If the ingredient type doesn't exist
        IngredientLotNotFound: If the lot doesn't exist
        ValidationError: If the lot belongs to another ingredient type
    """
    if session is not None:
        return _set_active_lot_impl(on_date, ingredient_type_id, lot_id, user, session)
    with session_scope() as session:
        return _set_active_lot_impl(on_date, ingredient_type_id, lot_id, user, session)


def _set_active_lot_impl(on_date, ingredient_type_id, lot_id, user, session) -> Dict[str, Any]:
    store = EntityStore(session)
    if store.get_ingredient_type(ingredient_type_id) is None:
        raise IngredientTypeNotFound(ingredient_type_id)
    lot = store.get_ingredient_lot(lot_id)
    if lot is None:
        raise IngredientLotNotFound(lot_id)
    if lot.ingredient_type_id != ingredient_type_id:
        raise ValidationError(
            [f"Lot {lot_id} is not a lot of ingredient type {ingredient_type_id}"]
        )
    entry = record_active_lot(store, on_date, lot, user)
    return entry.to_dict()


def clear_active_lot(
    on_date: date,
    ingredient_type_id: int,
    user: Optional[str] = None,
    session: Optional[Session] = None,
) -> bool:
    """
    Remove the day's active-lot selection for an ingredient (administrative).

    Afterwards the ingredient resolves by carry-forward again for that day.

    Returns:
        True if an entry was removed, False if there was none
    """
    if session is not None:
        return _clear_active_lot_impl(on_date, ingredient_type_id, user, session)
    with session_scope() as session:
        return _clear_active_lot_impl(on_date, ingredient_type_id, user, session)


def _clear_active_lot_impl(on_date, ingredient_type_id, user, session) -> bool:
    store = EntityStore(session)
    entry = store.delete_daily_active_log_entry(on_date, ingredient_type_id)
    if entry is None:
        log_operation(
            logger,
            operation="clear_active_lot",
            outcome="no_entry",
            level=logging.DEBUG,
            log_date=on_date.isoformat(),
            ingredient_type_id=ingredient_type_id,
        )
        return False

    audit_service.record_event(
        session,
        audit_service.CLEAR_DAILY_LOG,
        f"Cleared active lot for ingredient type {ingredient_type_id} "
        f"on {on_date.isoformat()}",
        user=user,
        entity_type="DailyActiveLogEntry",
        entity_id=entry.id,
    )
    log_operation(
        logger,
        operation="clear_active_lot",
        outcome="success",
        log_date=on_date.isoformat(),
        ingredient_type_id=ingredient_type_id,
        lot_id=entry.active_lot_id,
    )
    return True


def record_active_lot(store: EntityStore, on_date: date, lot: IngredientLot, user=None):
    """Upsert the daily log for the lot's ingredient type and audit it."""
    entry = store.upsert_daily_active_log_entry(on_date, lot.ingredient_type_id, lot.id)
    audit_service.record_event(
        store.session,
        audit_service.UPDATE_DAILY_LOG,
        f"Set active lot for ingredient type {lot.ingredient_type_id} "
        f"on {on_date.isoformat()} to {lot.batch_code}",
        user=user,
        entity_type="DailyActiveLogEntry",
        entity_id=entry.id,
    )
    log_operation(
        logger,
        operation="record_active_lot",
        outcome="success",
        log_date=on_date.isoformat(),
        ingredient_type_id=lot.ingredient_type_id,
        lot_id=lot.id,
    )
    return entry


def get_daily_log(
    on_date: Optional[date] = None, session: Optional[Session] = None
) -> List[Dict[str, Any]]:
    """
    Resolve every active ingredient type for a day.

    Args:
        on_date: Production day (defaults to today)
        session: Optional database session

    Returns:
        One dict per active ingredient type, sorted by name, with keys
        ingredient_type_id, ingredient_type_name, lot (dict or None) and
        resolved_from (None when there is no lot)
    """
    on_date = on_date or today()
    if session is not None:
        return _get_daily_log_impl(on_date, session)
    with session_scope() as session:
        return _get_daily_log_impl(on_date, session)


def _get_daily_log_impl(on_date, session) -> List[Dict[str, Any]]:
    store = EntityStore(session)
    rows = []
    for ingredient_type in store.list_ingredient_types():
        found = find_active_lot(store, on_date, ingredient_type.id)
        rows.append(
            {
                "ingredient_type_id": ingredient_type.id,
                "ingredient_type_name": ingredient_type.name,
                "lot": found[0].to_dict() if found else None,
                "resolved_from": found[1] if found else None,
            }
        )
    return rows


def select_batch_lots(
    required_type_ids: Iterable[int],
    optional_type_ids: Iterable[int] = (),
    *,
    on_date: Optional[date] = None,
    overrides: Optional[Mapping[int, int]] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Pre-select the lots a new batch will consume.

    For each ingredient type, an operator override wins; otherwise the
    resolver's suggestion for the day is used.

    Args:
        required_type_ids: Ingredient types the batch cannot be made without
        optional_type_ids: Ingredient types that are omitted if unavailable
        on_date: Production day (defaults to today)
        overrides: Mapping of ingredient_type_id -> lot_id chosen by the operator
        session: Optional database session

    Returns:
        Dict with keys:
            - "lot_ids" (List[int]): selected lots, in request order
            - "selections" (List[Dict]): ingredient_type_id, lot_id, batch_code,
              resolved_from ("override", "daily_log" or "carry_forward")
            - "missing" (List[int]): optional types with no lot

    Raises:
        IngredientUnavailableError: If any required type has no lot
        IngredientLotNotFound: If an override names an unknown lot
        ValidationError: If an override lot belongs to another ingredient type
    """
    on_date = on_date or today()
    if session is not None:
        return _select_batch_lots_impl(
            list(required_type_ids), list(optional_type_ids), on_date, overrides or {}, session
        )
    with session_scope() as session:
        return _select_batch_lots_impl(
            list(required_type_ids), list(optional_type_ids), on_date, overrides or {}, session
        )


def _select_batch_lots_impl(required, optional, on_date, overrides, session) -> Dict[str, Any]:
    store = EntityStore(session)
    selections = []
    unavailable = []
    missing = []

    for ingredient_type_id in dict.fromkeys(required + optional):
        if ingredient_type_id in overrides:
            lot = store.get_ingredient_lot(overrides[ingredient_type_id])
            if lot is None:
                raise IngredientLotNotFound(overrides[ingredient_type_id])
            if lot.ingredient_type_id != ingredient_type_id:
                raise ValidationError(
                    [f"Lot {lot.id} is not a lot of ingredient type {ingredient_type_id}"]
                )
            found = (lot, RESOLVED_FROM_OVERRIDE)
        else:
            found = find_active_lot(store, on_date, ingredient_type_id)

        if found is None:
            if ingredient_type_id in required:
                unavailable.append(ingredient_type_id)
            else:
                missing.append(ingredient_type_id)
            continue

        lot, resolved_from = found
        selections.append(
            {
                "ingredient_type_id": ingredient_type_id,
                "lot_id": lot.id,
                "batch_code": lot.batch_code,
                "resolved_from": resolved_from,
            }
        )

    if unavailable:
        log_operation(
            logger,
            operation="select_batch_lots",
            outcome="ingredient_unavailable",
            level=logging.WARNING,
            ingredient_type_ids=unavailable,
        )
        raise IngredientUnavailableError(unavailable)

    return {
        "lot_ids": [s["lot_id"] for s in selections],
        "selections": selections,
        "missing": missing,
    }
