"""Trace Service - backward genealogy and forward recall impact.

Backward trace (product -> ingredients):
    product batch code or run id -> runs -> dough/filling batches -> lots

Forward trace (ingredients -> product), the recall question "if this is bad,
what did it reach?", can start from a supplier lot code, a dough/filling
batch code or a product batch code. Every kind returns the same
``ImpactReport`` shape.

Each trace loads one snapshot through an EntityStore at call start, builds a
GenealogyIndex over it and then works purely in memory. Link rows whose
target was deleted administratively are skipped and counted in
``missing_references``; they never raise.

Example Usage:
    >>> report = trace_forward("FL-23", TraceQueryKind.INGREDIENT_LOT_BY_CODE)
    >>> report.impacted_run_count, report.total_quantity
    (2, 18)
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Union

from sqlalchemy.orm import Session

from bakery_trace.models import TraceQueryKind
from bakery_trace.services.database import session_scope
from bakery_trace.services.dto import (
    BatchSummary,
    GenealogyReport,
    ImpactReport,
    LotSummary,
    RunGenealogy,
    RunSummary,
)
from bakery_trace.services.entity_store import EntityStore
from bakery_trace.services.exceptions import IngredientLotNotFound
from bakery_trace.services.genealogy_index import GenealogyIndex
from bakery_trace.services.logging_utils import get_service_logger, log_operation
from bakery_trace.utils.matching import code_matches, normalize_query

logger = get_service_logger(__name__)


class _Snapshot:
    """Every lot, batch and run keyed by id, plus the index over their links.

    Dicts preserve the store's deterministic order, so iterating ``lots``,
    ``batches`` or ``runs`` yields canonical trace order.
    """

    def __init__(self, store: EntityStore):
        self.lots = {lot.id: lot for lot in store.list_ingredient_lots()}
        self.batches = {batch.id: batch for batch in store.list_intermediate_batches()}
        self.runs = {run.id: run for run in store.list_production_runs()}
        self.index = GenealogyIndex.build(store)
        self.missing = 0

    def resolve(self, ids: Iterable[int], table: Dict[int, object]) -> List[int]:
        """Keep ids present in ``table``; count the rest as missing."""
        found = []
        for item in ids:
            if item in table:
                found.append(item)
            else:
                self.missing += 1
        return found

    @staticmethod
    def ordered(ids: Set[int], table: Dict[int, object]) -> list:
        """Rows of ``table`` whose id is in ``ids``, in table order."""
        return [row for key, row in table.items() if key in ids]


# =============================================================================
# Backward trace
# =============================================================================


def trace_backward(query: Union[int, str], session: Optional[Session] = None) -> GenealogyReport:
    """
    Trace products back to the ingredient lots that went into them.

    Args:
        query: Production run id (int) or product batch code (str). A code
               matches every run whose product batch code contains it,
               ignoring case.
        session: Optional database session

    Returns:
        GenealogyReport with one RunGenealogy per matched run. A run whose
        batches cannot be resolved still appears with empty lists. No
        match gives an empty report.

    Raises:
        TypeError: If query is a bool
    """
    if session is not None:
        return _trace_backward_impl(query, session)
    with session_scope() as session:
        return _trace_backward_impl(query, session)


def _trace_backward_impl(query, session) -> GenealogyReport:
    if isinstance(query, bool):
        raise TypeError("trace_backward query must be a run id or a product batch code")
    snapshot = _Snapshot(EntityStore(session))

    if isinstance(query, int):
        matched = [snapshot.runs[query]] if query in snapshot.runs else []
    else:
        matched = [
            run for run in snapshot.runs.values()
            if code_matches(run.product_batch_code, query)
        ]

    report = GenealogyReport(query=query)
    for run in matched:
        batch_ids = snapshot.resolve(snapshot.index.batches_for_run(run.id), snapshot.batches)
        lot_ids = []
        for batch_id in batch_ids:
            for lot_id in snapshot.resolve(snapshot.index.lots_for_batch(batch_id), snapshot.lots):
                if lot_id not in lot_ids:
                    lot_ids.append(lot_id)
        report.runs.append(
            RunGenealogy(
                run=RunSummary.from_model(run),
                batches=[BatchSummary.from_model(snapshot.batches[b]) for b in batch_ids],
                lots=[LotSummary.from_model(snapshot.lots[lot_id]) for lot_id in lot_ids],
            )
        )
    report.missing_references = snapshot.missing

    _log_trace("trace_backward", report.is_empty, snapshot.missing,
               query=str(query), run_count=len(report.runs))
    return report


# =============================================================================
# Forward trace
# =============================================================================


def trace_forward(
    query: str,
    query_kind: TraceQueryKind,
    ingredient_type_id: Optional[int] = None,
    session: Optional[Session] = None,
) -> ImpactReport:
    """
    Find everything downstream of a code.

    Args:
        query: Code to search for (case-insensitive substring)
        query_kind: Which code the query refers to (TraceQueryKind or value)
        ingredient_type_id: For lot queries, restrict matches to one
                            ingredient type. Ignored for other kinds.
        session: Optional database session

    Returns:
        ImpactReport; ``matched_lots`` is only filled for lot queries.
        A blank query or no match gives an empty report.

    Raises:
        ValueError: If query_kind is not a TraceQueryKind
    """
    query_kind = TraceQueryKind(query_kind)
    if session is not None:
        return _trace_forward_impl(query, query_kind, ingredient_type_id, session)
    with session_scope() as session:
        return _trace_forward_impl(query, query_kind, ingredient_type_id, session)


def _trace_forward_impl(query, query_kind, ingredient_type_id, session) -> ImpactReport:
    snapshot = _Snapshot(EntityStore(session))
    report = ImpactReport(query=query, query_kind=query_kind.value)

    if normalize_query(query) is not None:
        if query_kind == TraceQueryKind.INGREDIENT_LOT_BY_CODE:
            lots = [
                lot for lot in snapshot.lots.values()
                if code_matches(lot.batch_code, query)
                and (ingredient_type_id is None or lot.ingredient_type_id == ingredient_type_id)
            ]
            _impact_from_lots(snapshot, report, lots)
        elif query_kind == TraceQueryKind.INTERMEDIATE_BATCH_BY_CODE:
            batch_ids = {
                batch.id for batch in snapshot.batches.values()
                if code_matches(batch.code, query)
            }
            _impact_from_batches(snapshot, report, batch_ids)
        else:
            run_ids = {
                run.id for run in snapshot.runs.values()
                if code_matches(run.product_batch_code, query)
            }
            _impact_from_runs(snapshot, report, run_ids)

    report.missing_references = snapshot.missing
    _log_trace(
        "trace_forward",
        report.is_empty,
        snapshot.missing,
        query=query,
        query_kind=query_kind.value,
        lot_count=report.matched_lot_count,
        batch_count=report.impacted_batch_count,
        run_count=report.impacted_run_count,
        total_quantity=report.total_quantity,
    )
    return report


def trace_lot(lot_id: int, session: Optional[Session] = None) -> ImpactReport:
    """Forward trace for one known ingredient lot.

    Raises:
        IngredientLotNotFound: If the lot doesn't exist
    """
    if session is not None:
        return _trace_lot_impl(lot_id, session)
    with session_scope() as session:
        return _trace_lot_impl(lot_id, session)


def _trace_lot_impl(lot_id, session) -> ImpactReport:
    snapshot = _Snapshot(EntityStore(session))
    lot = snapshot.lots.get(lot_id)
    if lot is None:
        raise IngredientLotNotFound(lot_id)

    report = ImpactReport(
        query=lot.batch_code, query_kind=TraceQueryKind.INGREDIENT_LOT_BY_CODE.value
    )
    _impact_from_lots(snapshot, report, [lot])
    report.missing_references = snapshot.missing
    _log_trace("trace_lot", report.is_empty, snapshot.missing, lot_id=lot_id,
               batch_count=report.impacted_batch_count, run_count=report.impacted_run_count)
    return report


def _impact_from_lots(snapshot: _Snapshot, report: ImpactReport, lots) -> None:
    batch_ids: Set[int] = set()
    for lot in lots:
        batch_ids.update(snapshot.resolve(snapshot.index.batches_for_lot(lot.id), snapshot.batches))
    report.matched_lots = [LotSummary.from_model(lot) for lot in lots]
    _impact_from_batches(snapshot, report, batch_ids)


def _impact_from_batches(snapshot: _Snapshot, report: ImpactReport, batch_ids: Set[int]) -> None:
    run_ids: Set[int] = set()
    for batch_id in batch_ids:
        run_ids.update(snapshot.resolve(snapshot.index.runs_for_batch(batch_id), snapshot.runs))
    report.impacted_batches = [
        BatchSummary.from_model(batch) for batch in snapshot.ordered(batch_ids, snapshot.batches)
    ]
    report.impacted_runs = [
        RunSummary.from_model(run) for run in snapshot.ordered(run_ids, snapshot.runs)
    ]


def _impact_from_runs(snapshot: _Snapshot, report: ImpactReport, run_ids: Set[int]) -> None:
    batch_ids: Set[int] = set()
    for run_id in run_ids:
        batch_ids.update(snapshot.resolve(snapshot.index.batches_for_run(run_id), snapshot.batches))
    report.impacted_batches = [
        BatchSummary.from_model(batch) for batch in snapshot.ordered(batch_ids, snapshot.batches)
    ]
    report.impacted_runs = [
        RunSummary.from_model(run) for run in snapshot.ordered(run_ids, snapshot.runs)
    ]


def _log_trace(operation: str, empty: bool, missing: int, **context) -> None:
    if missing:
        log_operation(
            logger,
            operation=operation,
            outcome="missing_references",
            level=logging.WARNING,
            missing_references=missing,
            **context,
        )
    log_operation(
        logger,
        operation=operation,
        outcome="empty_match" if empty else "success",
        level=logging.DEBUG,
        **context,
    )
