"""Production Run Service - recording finished-goods production.

A production run consumes one or more dough and/or filling batches and
produces one or more (product, quantity) outputs. The run, its outputs and
its batch links are written in one transaction.

Each RunBatchLink stores whether the batch was used as dough or filling in
an explicit batch_type column; a batch can only be linked under its own
type.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy.orm import Session

from bakery_trace.models import (
    BatchType,
    Product,
    ProductionRun,
    ProductionRunOutput,
    RunBatchLink,
)
from bakery_trace.services import audit_service
from bakery_trace.services.database import session_scope
from bakery_trace.services.entity_store import EntityStore
from bakery_trace.services.exceptions import (
    BatchTypeMismatchError,
    EmptyProductionRunError,
    IntermediateBatchNotFound,
    ProductNotFound,
    ProductionRunNotFound,
    ValidationError,
)
from bakery_trace.services.logging_utils import get_service_logger, log_operation
from bakery_trace.utils.constants import MAX_CODE_LENGTH, PRODUCT_BATCH_CODE_FORMAT
from bakery_trace.utils.datetime_utils import as_utc_naive, today, utc_now

logger = get_service_logger(__name__)

# (product_id, quantity) pairs, or a mapping of product_id -> quantity
Outputs = Union[Sequence[Tuple[int, int]], Dict[int, int]]


def default_product_batch_code(run_date: Optional[date] = None) -> str:
    """Product batch code for a production day, formatted ddmmyy.

    Example:
        >>> default_product_batch_code(date(2025, 1, 25))
        '250125'
    """
    return (run_date or today()).strftime(PRODUCT_BATCH_CODE_FORMAT)


def _normalize_outputs(outputs: Outputs) -> List[Tuple[int, int]]:
    if isinstance(outputs, dict):
        return list(outputs.items())
    return [(product_id, quantity) for product_id, quantity in outputs]


# =============================================================================
# Creation
# =============================================================================


def create_production_run(
    product_batch_code: Optional[str],
    created_by: str,
    outputs: Outputs,
    *,
    dough_batch_ids: Iterable[int] = (),
    filling_batch_ids: Iterable[int] = (),
    run_at: Optional[datetime] = None,
    notes: Optional[str] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Record a production run.

    Args:
        product_batch_code: Code printed on the product; None or blank uses
                            default_product_batch_code() of the run date
        created_by: Lead operator
        outputs: (product_id, quantity) pairs or {product_id: quantity}.
                 The same product may appear more than once.
        dough_batch_ids: Dough batches consumed
        filling_batch_ids: Filling batches consumed
        run_at: When the run took place (defaults to now)
        notes: Optional notes
        session: Optional database session

    Returns:
        Dict with run fields plus dough_batch_ids, filling_batch_ids,
        quantities and total_quantity

    Raises:
        EmptyProductionRunError: If no dough or filling batch is given
        IntermediateBatchNotFound: If a batch id doesn't exist
        BatchTypeMismatchError: If a batch is listed under the wrong type
        ProductNotFound: If an output names an unknown product
        ValidationError: If the operator is blank, there are no outputs, a
                         quantity is negative, or the same batch is listed
                         as both dough and filling
    """
    if session is not None:
        return _create_production_run_impl(
            product_batch_code, created_by, outputs, dough_batch_ids,
            filling_batch_ids, run_at, notes, session,
        )
    with session_scope() as session:
        return _create_production_run_impl(
            product_batch_code, created_by, outputs, dough_batch_ids,
            filling_batch_ids, run_at, notes, session,
        )


def _create_production_run_impl(
    product_batch_code, created_by, outputs, dough_batch_ids,
    filling_batch_ids, run_at, notes, session,
) -> Dict[str, Any]:
    run_at = run_at or utc_now()
    if not product_batch_code or not product_batch_code.strip():
        product_batch_code = default_product_batch_code(run_at.date())

    dough_ids = list(dict.fromkeys(dough_batch_ids))
    filling_ids = list(dict.fromkeys(filling_batch_ids))
    pairs = _normalize_outputs(outputs)

    errors = []
    if len(product_batch_code) > MAX_CODE_LENGTH:
        errors.append(f"Product batch code must be at most {MAX_CODE_LENGTH} characters")
    if not created_by or not created_by.strip():
        errors.append("Operator is required")
    if not pairs:
        errors.append("At least one product output is required")
    for product_id, quantity in pairs:
        if quantity is None or int(quantity) < 0:
            errors.append(f"Quantity for product {product_id} cannot be negative")
    both = set(dough_ids) & set(filling_ids)
    if both:
        errors.append(
            "Batches listed as both dough and filling: " + ", ".join(str(b) for b in sorted(both))
        )
    if errors:
        raise ValidationError(errors)

    if not dough_ids and not filling_ids:
        log_operation(
            logger,
            operation="create_production_run",
            outcome="empty_batch_set",
            level=logging.WARNING,
            product_batch_code=product_batch_code,
        )
        raise EmptyProductionRunError(product_batch_code)

    store = EntityStore(session)
    run = ProductionRun(
        product_batch_code=product_batch_code,
        run_at=as_utc_naive(run_at),
        created_by=created_by,
        notes=notes,
    )

    for expected, batch_ids in ((BatchType.DOUGH, dough_ids), (BatchType.FILLING, filling_ids)):
        for batch_id in batch_ids:
            batch = store.get_intermediate_batch(batch_id)
            if batch is None:
                raise IntermediateBatchNotFound(batch_id)
            if batch.batch_type != expected.value:
                raise BatchTypeMismatchError(batch_id, expected.value, batch.batch_type)
            run.batch_links.append(RunBatchLink(batch_id=batch_id, batch_type=expected.value))

    for product_id, quantity in pairs:
        product = session.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise ProductNotFound(product_id)
        run.outputs.append(ProductionRunOutput(product=product, quantity=int(quantity)))

    store.insert(run)

    audit_service.record_event(
        session,
        audit_service.CREATE_PRODUCTION_RUN,
        f"Created production run {run.product_batch_code}",
        user=created_by,
        entity_type="ProductionRun",
        entity_id=run.id,
    )
    log_operation(
        logger,
        operation="create_production_run",
        outcome="success",
        production_run_id=run.id,
        product_batch_code=run.product_batch_code,
        batch_count=len(run.batch_links),
        total_quantity=run.total_quantity,
    )
    return run.to_dict()


# =============================================================================
# Queries
# =============================================================================


def get_production_run(production_run_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Get a production run by ID.

    Raises:
        ProductionRunNotFound: If the run doesn't exist
    """
    if session is not None:
        return _get_production_run_impl(production_run_id, session)
    with session_scope() as session:
        return _get_production_run_impl(production_run_id, session)


def _get_production_run_impl(production_run_id: int, session: Session) -> Dict[str, Any]:
    run = EntityStore(session).get_production_run(production_run_id)
    if run is None:
        raise ProductionRunNotFound(production_run_id)
    return run.to_dict()


def get_production_runs(
    *, on_date: Optional[date] = None, session: Optional[Session] = None
) -> List[Dict[str, Any]]:
    """List production runs, optionally for one day, in run order."""
    if session is not None:
        return _get_production_runs_impl(on_date, session)
    with session_scope() as session:
        return _get_production_runs_impl(on_date, session)


def _get_production_runs_impl(on_date, session) -> List[Dict[str, Any]]:
    predicate = None
    if on_date is not None:
        predicate = lambda run: run.run_at.date() == on_date  # noqa: E731
    return [run.to_dict() for run in EntityStore(session).list_production_runs(predicate)]


# =============================================================================
# Administrative deletion
# =============================================================================


def delete_production_run(
    production_run_id: int, user: Optional[str] = None, session: Optional[Session] = None
) -> None:
    """Delete a run with its outputs and batch links (administrative).

    Raises:
        ProductionRunNotFound: If the run doesn't exist
    """
    if session is not None:
        return _delete_production_run_impl(production_run_id, user, session)
    with session_scope() as session:
        return _delete_production_run_impl(production_run_id, user, session)


def _delete_production_run_impl(production_run_id, user, session) -> None:
    run = EntityStore(session).get_production_run(production_run_id)
    if run is None:
        raise ProductionRunNotFound(production_run_id)
    code = run.product_batch_code
    session.delete(run)
    session.flush()

    audit_service.record_event(
        session,
        audit_service.DELETE_PRODUCTION_RUN,
        f"Deleted production run {code}",
        user=user,
        entity_type="ProductionRun",
        entity_id=production_run_id,
    )
    log_operation(
        logger,
        operation="delete_production_run",
        outcome="success",
        production_run_id=production_run_id,
    )
