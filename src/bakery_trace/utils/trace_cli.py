"""
Trace CLI Utility

Command-line interface for genealogy and recall queries.
No UI required - designed for inspectors, scripting and testing.

Usage Examples:
    # Which lots went into product batch 250125?
    bakery-trace trace-back 250125

    # Trace a single production run by id
    bakery-trace trace-back 42 --run-id

    # Recall: everything made with flour lot FL-23
    bakery-trace trace-forward FL-23 --kind lot

    # Same, restricted to one ingredient type, exported for the inspector
    bakery-trace trace-forward FL-23 --kind lot --ingredient-type 3 --csv recall.csv

    # What was made today
    bakery-trace daily-report

    # Which sugar lot is active on a given day
    bakery-trace active-lot 2 --date 2025-01-05
"""

import argparse
import json
import logging
import sys
from datetime import date
from typing import List, Optional

from bakery_trace.models import TraceQueryKind
from bakery_trace.services.active_lot_service import resolve_active_lot
from bakery_trace.services.database import initialize_app_database
from bakery_trace.services.exceptions import ServiceError
from bakery_trace.services.report_service import (
    export_impact_csv,
    genealogy_rows,
    get_daily_production_report,
    render_impact_text,
)
from bakery_trace.services.trace_service import trace_backward, trace_forward, trace_lot
from bakery_trace.utils.constants import APP_NAME, APP_VERSION
from bakery_trace.utils.datetime_utils import today

KIND_CHOICES = {
    "lot": TraceQueryKind.INGREDIENT_LOT_BY_CODE,
    "batch": TraceQueryKind.INTERMEDIATE_BATCH_BY_CODE,
    "product": TraceQueryKind.PRODUCT_BATCH_CODE_DIRECT,
}


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD")


def trace_back(query: str, run_id: bool = False) -> int:
    """Print the ingredient lots behind matching production runs."""
    if run_id:
        if not query.isdigit():
            print(f"ERROR: run id must be a number, got '{query}'")
            return 1
        report = trace_backward(int(query))
    else:
        report = trace_backward(query)

    if report.is_empty:
        print(f"No production runs match '{query}'.")
        return 0

    for row in genealogy_rows(report):
        print(
            f"{row['product_batch_code']}  {row['run_at']}  {row['products']}  "
            f"dough=[{row['dough_batches']}] filling=[{row['filling_batches']}]  "
            f"{row['ingredient'] or '-'} {row['lot_code'] or '-'}"
        )
    if report.missing_references:
        print(f"WARNING: {report.missing_references} referenced record(s) no longer exist")
    return 0


def trace_fwd(
    query: str,
    kind: str,
    ingredient_type_id: Optional[int] = None,
    csv_path: Optional[str] = None,
) -> int:
    """Print the recall impact of a lot, batch or product batch code."""
    report = trace_forward(query, KIND_CHOICES[kind], ingredient_type_id=ingredient_type_id)
    print(render_impact_text(report))
    if csv_path:
        result = export_impact_csv(report, csv_path)
        print(f"Wrote {result.record_count} row(s) to {result.output_path}")
    return 0


def trace_one_lot(lot_id: int) -> int:
    """Print the recall impact of one ingredient lot."""
    print(render_impact_text(trace_lot(lot_id)))
    return 0


def daily_report(on_date: Optional[date] = None, as_json: bool = False) -> int:
    """Print batches and runs made on one day."""
    report = get_daily_production_report(on_date)
    if as_json:
        print(json.dumps(report, indent=2))
        return 0

    print(f"Daily production report for {report['date']}")
    print("")
    print("Batches:")
    if not report["batches"]:
        print("  (none)")
    for batch in report["batches"]:
        ingredients = ", ".join(
            f"{item['ingredient']} {item['lot_code']}" for item in batch["ingredients"]
        )
        print(f"  {batch['code']} ({batch['batch_type']}) {batch['name']}: {ingredients}")
    print("")
    print("Production:")
    if not report["runs"]:
        print("  (none)")
    for row in report["runs"]:
        print(
            f"  {row['product_batch_code']}  {row['product']} x{row['quantity']}  "
            f"dough=[{', '.join(row['dough_batches'])}] "
            f"filling=[{', '.join(row['filling_batches'])}]"
        )
    return 0


def active_lot(ingredient_type_id: int, on_date: Optional[date] = None) -> int:
    """Print the active lot of an ingredient type."""
    on_date = on_date or today()
    lot = resolve_active_lot(on_date, ingredient_type_id)
    if lot is None:
        print(f"No lot on record for ingredient type {ingredient_type_id}.")
        return 1
    print(
        f"{on_date.isoformat()}: {lot['ingredient_type_name']} lot {lot['batch_code']} "
        f"(id {lot['id']}, {lot['resolved_from']})"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bakery-trace",
        description=f"Lot genealogy and recall queries for {APP_NAME}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Trace a product batch back to its ingredient lots:
    bakery-trace trace-back 250125

  Recall impact of a supplier lot code:
    bakery-trace trace-forward FL-23 --kind lot --csv recall.csv

  Recall impact of a dough batch:
    bakery-trace trace-forward DOUGH-01 --kind batch
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    back_parser = subparsers.add_parser("trace-back", help="Trace products back to lots")
    back_parser.add_argument("query", help="Product batch code (substring) or run id")
    back_parser.add_argument(
        "--run-id", action="store_true", help="Treat the query as a production run id"
    )

    fwd_parser = subparsers.add_parser("trace-forward", help="Recall impact of a code")
    fwd_parser.add_argument("query", help="Code to search for (case-insensitive substring)")
    fwd_parser.add_argument(
        "-k", "--kind",
        choices=sorted(KIND_CHOICES),
        default="lot",
        help="What the code refers to (default: lot)",
    )
    fwd_parser.add_argument(
        "--ingredient-type",
        dest="ingredient_type_id",
        type=int,
        help="Restrict lot matches to one ingredient type id",
    )
    fwd_parser.add_argument("--csv", dest="csv_path", help="Also write impacted runs to CSV")

    lot_parser = subparsers.add_parser("trace-lot", help="Recall impact of one lot id")
    lot_parser.add_argument("lot_id", type=int, help="Ingredient lot id")

    daily_parser = subparsers.add_parser("daily-report", help="Batches and runs of one day")
    daily_parser.add_argument("--date", dest="on_date", type=_parse_date, help="YYYY-MM-DD")
    daily_parser.add_argument("--json", dest="as_json", action="store_true", help="JSON output")

    active_parser = subparsers.add_parser("active-lot", help="Active lot of an ingredient type")
    active_parser.add_argument("ingredient_type_id", type=int, help="Ingredient type id")
    active_parser.add_argument("--date", dest="on_date", type=_parse_date, help="YYYY-MM-DD")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    initialize_app_database()

    try:
        if args.command == "trace-back":
            return trace_back(args.query, args.run_id)
        elif args.command == "trace-forward":
            return trace_fwd(args.query, args.kind, args.ingredient_type_id, args.csv_path)
        elif args.command == "trace-lot":
            return trace_one_lot(args.lot_id)
        elif args.command == "daily-report":
            return daily_report(args.on_date, args.as_json)
        elif args.command == "active-lot":
            return active_lot(args.ingredient_type_id, args.on_date)
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
