"""Receiving Service - ingredient lots entering the bakery.

This module provides functions for:
- Receiving single lots and multi-line receiving reports
- Listing the lots of an ingredient type
- Correcting a mistyped supplier batch code
- Administrative deletion of lots and receiving reports

Lots are never otherwise mutated. Deleting a lot that was already consumed
leaves dangling link rows behind; traces report those as missing rather than
failing, so deletion is allowed but logged at WARNING.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from bakery_trace.models import (
    BatchIngredientLink,
    IngredientLot,
    IngredientType,
    ReceivingReport,
    StorageCondition,
)
from bakery_trace.services import audit_service
from bakery_trace.services.database import session_scope
from bakery_trace.services.entity_store import EntityStore
from bakery_trace.services.exceptions import (
    IngredientLotNotFound,
    IngredientTypeNotFound,
    ReceivingReportNotFound,
    ValidationError,
)
from bakery_trace.services.logging_utils import get_service_logger, log_operation
from bakery_trace.utils.constants import ALL_UNITS, MAX_CODE_LENGTH, STORAGE_CONDITIONS
from bakery_trace.utils.datetime_utils import as_utc_naive, utc_now

logger = get_service_logger(__name__)


# =============================================================================
# Validation
# =============================================================================


def _validate_lot_fields(
    batch_code: Optional[str],
    quantity: Optional[Decimal],
    unit: Optional[str],
    storage: Optional[str],
) -> List[str]:
    errors = []
    if not batch_code or not batch_code.strip():
        errors.append("Batch code is required")
    elif len(batch_code) > MAX_CODE_LENGTH:
        errors.append(f"Batch code must be at most {MAX_CODE_LENGTH} characters")
    if quantity is not None and Decimal(str(quantity)) < 0:
        errors.append("Quantity cannot be negative")
    if unit is not None and unit not in ALL_UNITS:
        errors.append(f"Unknown unit '{unit}'")
    if storage is not None and storage not in STORAGE_CONDITIONS:
        errors.append(f"Unknown storage condition '{storage}'")
    return errors


def _build_lot(
    ingredient_type: IngredientType,
    batch_code: str,
    received_at: datetime,
    received_by: str,
    best_before: Optional[date],
    quantity: Optional[Decimal],
    unit: Optional[str],
    storage: Optional[str],
    notes: Optional[str],
) -> IngredientLot:
    if isinstance(storage, StorageCondition):
        storage = storage.value
    errors = _validate_lot_fields(batch_code, quantity, unit, storage)
    if errors:
        raise ValidationError(errors)

    if quantity is not None and unit is None:
        unit = ingredient_type.default_unit

    return IngredientLot(
        ingredient_type=ingredient_type,
        batch_code=batch_code,
        received_at=received_at,
        received_by=received_by,
        best_before=best_before,
        quantity=Decimal(str(quantity)) if quantity is not None else None,
        unit=unit,
        storage=storage or ingredient_type.storage,
        notes=notes,
    )


# =============================================================================
# Receiving
# =============================================================================


def receive_lot(
    ingredient_type_id: int,
    batch_code: str,
    received_by: str,
    *,
    received_at: Optional[datetime] = None,
    best_before: Optional[date] = None,
    quantity: Optional[Decimal] = None,
    unit: Optional[str] = None,
    storage: Optional[str] = None,
    notes: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Record receipt of one ingredient lot.

    Args:
        ingredient_type_id: Ingredient type received
        batch_code: Supplier batch code as printed on the goods
        received_by: Operator receiving the goods
        received_at: Receipt timestamp (defaults to now)
        best_before: Best-before date
        quantity: Optional received quantity
        unit: Optional unit (defaults to the type's unit when quantity is given)
        storage: Storage condition (defaults to the type's storage)
        notes: Optional notes
        session: Optional database session

    Returns:
        Dict[str, Any]: Created lot as dictionary

    Raises:
        IngredientTypeNotFound: If the ingredient type doesn't exist
        ValidationError: If the lot fields are invalid
    """
    if session is not None:
        return _receive_lot_impl(
            ingredient_type_id, batch_code, received_by, received_at,
            best_before, quantity, unit, storage, notes, session,
        )
    with session_scope() as session:
        return _receive_lot_impl(
            ingredient_type_id, batch_code, received_by, received_at,
            best_before, quantity, unit, storage, notes, session,
        )


def _receive_lot_impl(
    ingredient_type_id, batch_code, received_by, received_at,
    best_before, quantity, unit, storage, notes, session,
) -> Dict[str, Any]:
    store = EntityStore(session)
    ingredient_type = store.get_ingredient_type(ingredient_type_id)
    if not ingredient_type:
        raise IngredientTypeNotFound(ingredient_type_id)

    lot = _build_lot(
        ingredient_type,
        batch_code,
        as_utc_naive(received_at or utc_now()),
        received_by,
        best_before,
        quantity,
        unit,
        storage,
        notes,
    )
    store.insert(lot)

    audit_service.record_event(
        session,
        audit_service.RECEIVE_GOODS,
        f"Received {lot.batch_code}",
        user=received_by,
        entity_type="IngredientLot",
        entity_id=lot.id,
    )
    log_operation(
        logger,
        operation="receive_lot",
        outcome="success",
        lot_id=lot.id,
        ingredient_type_id=ingredient_type_id,
        batch_code=lot.batch_code,
    )
    return lot.to_dict()


def create_receiving_report(
    received_by: str,
    lots: List[Dict[str, Any]],
    *,
    received_at: Optional[datetime] = None,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Record a delivery with one or more lot lines.

    Every lot inherits the report's received_at and received_by.

    Args:
        received_by: Operator signing for the delivery
        lots: Lot lines, each a dict with keys ingredient_type_id, batch_code
              and optionally best_before, quantity, unit, storage, notes
        received_at: Delivery timestamp (defaults to now)
        reference: Optional delivery note / supplier reference
        notes: Optional report notes
        session: Optional database session

    Returns:
        Dict[str, Any]: Created report with "lots" (list of lot dicts)

    Raises:
        ValidationError: If there are no lines or a line is invalid
        IngredientTypeNotFound: If a line names an unknown ingredient type
    """
    if session is not None:
        return _create_receiving_report_impl(
            received_by, lots, received_at, reference, notes, session
        )
    with session_scope() as session:
        return _create_receiving_report_impl(
            received_by, lots, received_at, reference, notes, session
        )


def _create_receiving_report_impl(
    received_by, lots, received_at, reference, notes, session
) -> Dict[str, Any]:
    if not lots:
        raise ValidationError(["A receiving report needs at least one lot line"])

    store = EntityStore(session)
    received_at = as_utc_naive(received_at or utc_now())

    report = store.insert(
        ReceivingReport(
            received_at=received_at,
            received_by=received_by,
            reference=reference,
            notes=notes,
        )
    )

    created = []
    for line in lots:
        ingredient_type_id = line.get("ingredient_type_id")
        ingredient_type = store.get_ingredient_type(ingredient_type_id)
        if not ingredient_type:
            raise IngredientTypeNotFound(ingredient_type_id)
        lot = _build_lot(
            ingredient_type,
            line.get("batch_code"),
            received_at,
            received_by,
            line.get("best_before"),
            line.get("quantity"),
            line.get("unit"),
            line.get("storage"),
            line.get("notes"),
        )
        lot.receiving_report_id = report.id
        created.append(store.insert(lot))

    audit_service.record_event(
        session,
        audit_service.CREATE_RECEIVING_REPORT,
        f"Created receiving report with {len(created)} lines",
        user=received_by,
        entity_type="ReceivingReport",
        entity_id=report.id,
    )
    log_operation(
        logger,
        operation="create_receiving_report",
        outcome="success",
        receiving_report_id=report.id,
        lot_count=len(created),
    )

    result = report.to_dict()
    result["lots"] = [lot.to_dict() for lot in created]
    return result


# =============================================================================
# Queries
# =============================================================================


def get_ingredient_lot(lot_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Get a lot by ID.

    Raises:
        IngredientLotNotFound: If the lot doesn't exist
    """
    if session is not None:
        return _get_ingredient_lot_impl(lot_id, session)
    with session_scope() as session:
        return _get_ingredient_lot_impl(lot_id, session)


def _get_ingredient_lot_impl(lot_id: int, session: Session) -> Dict[str, Any]:
    lot = EntityStore(session).get_ingredient_lot(lot_id)
    if not lot:
        raise IngredientLotNotFound(lot_id)
    return lot.to_dict()


def get_lots_for_ingredient(
    ingredient_type_id: int, session: Optional[Session] = None
) -> List[Dict[str, Any]]:
    """Get every lot of one ingredient type, oldest receipt first."""
    if session is not None:
        return _get_lots_for_ingredient_impl(ingredient_type_id, session)
    with session_scope() as session:
        return _get_lots_for_ingredient_impl(ingredient_type_id, session)


def _get_lots_for_ingredient_impl(ingredient_type_id: int, session: Session):
    lots = EntityStore(session).list_ingredient_lots(ingredient_type_id=ingredient_type_id)
    return [lot.to_dict() for lot in lots]


# =============================================================================
# Corrections and administrative deletion
# =============================================================================


def correct_lot_batch_code(
    lot_id: int,
    batch_code: str,
    user: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Correct a mistyped supplier batch code.

    This is the only permitted change to a received lot.

    Raises:
        IngredientLotNotFound: If the lot doesn't exist
        ValidationError: If the new code is blank or too long
    """
    if session is not None:
        return _correct_lot_batch_code_impl(lot_id, batch_code, user, session)
    with session_scope() as session:
        return _correct_lot_batch_code_impl(lot_id, batch_code, user, session)


def _correct_lot_batch_code_impl(lot_id, batch_code, user, session) -> Dict[str, Any]:
    errors = _validate_lot_fields(batch_code, None, None, None)
    if errors:
        raise ValidationError(errors)

    lot = EntityStore(session).get_ingredient_lot(lot_id)
    if not lot:
        raise IngredientLotNotFound(lot_id)

    old_code = lot.batch_code
    lot.batch_code = batch_code
    session.flush()

    audit_service.record_event(
        session,
        audit_service.CORRECT_LOT_CODE,
        f"Corrected lot code {old_code} -> {batch_code}",
        user=user,
        entity_type="IngredientLot",
        entity_id=lot.id,
    )
    return lot.to_dict()


def delete_ingredient_lot(
    lot_id: int, user: Optional[str] = None, session: Optional[Session] = None
) -> None:
    """
    Delete a lot (administrative).

    Batches that consumed the lot keep their link rows; traces show the
    reference as missing.

    Raises:
        IngredientLotNotFound: If the lot doesn't exist
    """
    if session is not None:
        return _delete_ingredient_lot_impl(lot_id, user, session)
    with session_scope() as session:
        return _delete_ingredient_lot_impl(lot_id, user, session)


def _delete_ingredient_lot_impl(lot_id, user, session) -> None:
    lot = EntityStore(session).get_ingredient_lot(lot_id)
    if not lot:
        raise IngredientLotNotFound(lot_id)

    consumed_by = (
        session.query(BatchIngredientLink).filter(BatchIngredientLink.lot_id == lot_id).count()
    )
    code = lot.batch_code
    session.delete(lot)
    session.flush()

    audit_service.record_event(
        session,
        audit_service.DELETE_LOT,
        f"Deleted lot {code}",
        user=user,
        entity_type="IngredientLot",
        entity_id=lot_id,
    )
    if consumed_by:
        log_operation(
            logger,
            operation="delete_ingredient_lot",
            outcome="deleted_consumed_lot",
            level=logging.WARNING,
            lot_id=lot_id,
            link_count=consumed_by,
        )
    else:
        log_operation(logger, operation="delete_ingredient_lot", outcome="success", lot_id=lot_id)


def delete_receiving_report(
    report_id: int, user: Optional[str] = None, session: Optional[Session] = None
) -> None:
    """
    Delete a receiving report. Its lots are kept and detached from it.

    Raises:
        ReceivingReportNotFound: If the report doesn't exist
    """
    if session is not None:
        return _delete_receiving_report_impl(report_id, user, session)
    with session_scope() as session:
        return _delete_receiving_report_impl(report_id, user, session)


def _delete_receiving_report_impl(report_id, user, session) -> None:
    report = session.query(ReceivingReport).filter(ReceivingReport.id == report_id).first()
    if not report:
        raise ReceivingReportNotFound(report_id)
    for lot in report.lots:
        lot.receiving_report_id = None
    session.delete(report)
    session.flush()

    audit_service.record_event(
        session,
        audit_service.DELETE_RECEIVING_REPORT,
        f"Deleted receiving report {report.reference or report_id}",
        user=user,
        entity_type="ReceivingReport",
        entity_id=report_id,
    )
