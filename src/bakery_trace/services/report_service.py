"""
Report Service - flatten trace results for display and export.

Provides:
- genealogy_rows: one row per (run, lot) of a backward trace
- impact_summary: header figures plus per-run rows of a forward trace
- get_daily_production_report: what was made on one production day
- export_impact_csv: impacted runs as CSV for an inspector
- render_impact_text: plain-text recall summary for the command line

Usage:
    from bakery_trace.services.report_service import export_impact_csv

    report = trace_forward("FL-23", TraceQueryKind.INGREDIENT_LOT_BY_CODE)
    result = export_impact_csv(report, "recall_FL-23.csv")
    print(f"Exported {result.record_count} rows")
"""

import csv
import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from bakery_trace.models import BatchType
from bakery_trace.services.database import session_scope
from bakery_trace.services.dto import GenealogyReport, ImpactReport, RunSummary
from bakery_trace.services.entity_store import EntityStore
from bakery_trace.services.logging_utils import get_service_logger, log_operation
from bakery_trace.utils.datetime_utils import today, utc_now

logger = get_service_logger(__name__)

IMPACT_CSV_COLUMNS = [
    "product_batch_code",
    "run_at",
    "created_by",
    "product",
    "quantity",
]


@dataclass
class ExportResult:
    """Result of a report export operation."""

    report_type: str
    record_count: int
    output_path: str
    export_date: str


def _products_label(run: RunSummary) -> str:
    return ", ".join(f"{item.product_name} x{item.quantity}" for item in run.products)


# ============================================================================
# Trace result formatting
# ============================================================================


def genealogy_rows(report: GenealogyReport) -> List[Dict[str, Any]]:
    """Flatten a backward trace to one row per (run, lot).

    A run without resolvable lots still gets one row, with empty lot fields.
    """
    rows = []
    for entry in report.runs:
        run = entry.run
        base = {
            "product_batch_code": run.product_batch_code,
            "run_at": run.run_at.isoformat(),
            "products": _products_label(run),
            "dough_batches": ", ".join(
                b.code for b in entry.batches if b.batch_type == BatchType.DOUGH.value
            ),
            "filling_batches": ", ".join(
                b.code for b in entry.batches if b.batch_type == BatchType.FILLING.value
            ),
        }
        if not entry.lots:
            rows.append({**base, "ingredient": None, "lot_code": None, "best_before": None})
            continue
        for lot in entry.lots:
            rows.append(
                {
                    **base,
                    "ingredient": lot.ingredient_type_name,
                    "lot_code": lot.batch_code,
                    "best_before": lot.best_before.isoformat() if lot.best_before else None,
                }
            )
    return rows


def impact_summary(report: ImpactReport) -> Dict[str, Any]:
    """Header figures and per-run rows of a forward trace."""
    return {
        "query": report.query,
        "query_kind": report.query_kind,
        "matched_lot_count": report.matched_lot_count,
        "impacted_batch_count": report.impacted_batch_count,
        "impacted_run_count": report.impacted_run_count,
        "total_quantity": report.total_quantity,
        "missing_references": report.missing_references,
        "lot_codes": [lot.batch_code for lot in report.matched_lots],
        "batch_codes": [batch.code for batch in report.impacted_batches],
        "runs": [
            {
                "product_batch_code": run.product_batch_code,
                "run_at": run.run_at.isoformat(),
                "products": _products_label(run),
                "total_quantity": run.total_quantity,
            }
            for run in report.impacted_runs
        ],
    }


def render_impact_text(report: ImpactReport) -> str:
    """Render a forward trace as plain text."""
    summary = impact_summary(report)
    lines = [
        f"Recall trace for '{report.query}' ({report.query_kind})",
        f"  Matched lots:     {summary['matched_lot_count']}",
        f"  Impacted batches: {summary['impacted_batch_count']}",
        f"  Impacted runs:    {summary['impacted_run_count']}",
        f"  Total quantity:   {summary['total_quantity']}",
    ]
    if report.missing_references:
        lines.append(f"  Missing references: {report.missing_references}")
    if report.is_empty:
        lines.append("")
        lines.append("No matching records.")
        return "\n".join(lines)

    if summary["lot_codes"]:
        lines.append("")
        lines.append("Lots: " + ", ".join(summary["lot_codes"]))
    if summary["batch_codes"]:
        lines.append("Batches: " + ", ".join(summary["batch_codes"]))
    if summary["runs"]:
        lines.append("")
        lines.append("Runs:")
        for row in summary["runs"]:
            lines.append(
                f"  {row['product_batch_code']}  {row['run_at']}  "
                f"{row['products']}  (total {row['total_quantity']})"
            )
    return "\n".join(lines)


def export_impact_csv(report: ImpactReport, output_path: str) -> ExportResult:
    """
    Write the impacted runs of a forward trace to CSV.

    One row per (run, product) output, so the quantity column sums to the
    report's total_quantity.

    Args:
        report: Forward trace result
        output_path: Destination file; parent directories are created

    Returns:
        ExportResult with the number of data rows written
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    record_count = 0
    with open(output, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(IMPACT_CSV_COLUMNS)
        for run in report.impacted_runs:
            for item in run.products:
                writer.writerow(
                    [
                        run.product_batch_code,
                        run.run_at.isoformat(),
                        run.created_by,
                        item.product_name,
                        item.quantity,
                    ]
                )
                record_count += 1

    log_operation(
        logger,
        operation="export_impact_csv",
        outcome="success",
        query=report.query,
        record_count=record_count,
        output_path=str(output),
    )
    return ExportResult(
        report_type="impact",
        record_count=record_count,
        output_path=str(output),
        export_date=utc_now().isoformat(),
    )


# ============================================================================
# Daily production report
# ============================================================================


def get_daily_production_report(
    on_date: Optional[date] = None, session: Optional[Session] = None
) -> Dict[str, Any]:
    """
    Batches and production runs of one production day.

    Args:
        on_date: Day to report (defaults to today)
        session: Optional database session

    Returns:
        Dict with:
        - "date": ISO date
        - "batches": one entry per batch made that day, with an
          "ingredients" list of {ingredient, lot_code}
        - "runs": one row per (run, product) with dough and filling batch codes
    """
    on_date = on_date or today()
    if session is not None:
        return _get_daily_production_report_impl(on_date, session)
    with session_scope() as session:
        return _get_daily_production_report_impl(on_date, session)


def _get_daily_production_report_impl(on_date: date, session: Session) -> Dict[str, Any]:
    store = EntityStore(session)
    lots = {lot.id: lot for lot in store.list_ingredient_lots()}
    batch_codes = {batch.id: batch.code for batch in store.list_intermediate_batches()}

    batches = []
    for batch in store.list_intermediate_batches(lambda b: b.made_at.date() == on_date):
        ingredients = []
        for lot_id in batch.lot_ids:
            lot = lots.get(lot_id)
            if lot is None:
                continue
            ingredients.append(
                {"ingredient": lot.ingredient_type.name, "lot_code": lot.batch_code}
            )
        batches.append(
            {
                "batch_id": batch.id,
                "code": batch.code,
                "batch_type": batch.batch_type,
                "name": batch.name,
                "made_at": batch.made_at.isoformat(),
                "created_by": batch.created_by,
                "ingredients": ingredients,
            }
        )

    runs = []
    for run in store.list_production_runs(lambda r: r.run_at.date() == on_date):
        dough = [batch_codes[b] for b in run.batch_ids(BatchType.DOUGH) if b in batch_codes]
        filling = [batch_codes[b] for b in run.batch_ids(BatchType.FILLING) if b in batch_codes]
        for output in run.outputs:
            runs.append(
                {
                    "production_run_id": run.id,
                    "product_batch_code": run.product_batch_code,
                    "run_at": run.run_at.isoformat(),
                    "created_by": run.created_by,
                    "product": output.product.name,
                    "quantity": output.quantity,
                    "dough_batches": dough,
                    "filling_batches": filling,
                }
            )

    log_operation(
        logger,
        operation="get_daily_production_report",
        outcome="success",
        level=logging.DEBUG,
        report_date=on_date.isoformat(),
        batch_count=len(batches),
        row_count=len(runs),
    )
    return {"date": on_date.isoformat(), "batches": batches, "runs": runs}
