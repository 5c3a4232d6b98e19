"""Data Transfer Objects for trace results.

Traces return plain dataclasses instead of ORM instances so the result stays
valid after the session closes and can be serialized with ``to_dict()``.
All lists are in deterministic order (see EntityStore).
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union


def _iso(value: Optional[Union[date, datetime]]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class LotSummary:
    """An ingredient lot as it appears in a trace."""

    lot_id: int
    batch_code: str
    ingredient_type_id: int
    ingredient_type_name: Optional[str]
    received_at: datetime
    best_before: Optional[date] = None

    @classmethod
    def from_model(cls, lot) -> "LotSummary":
        return cls(
            lot_id=lot.id,
            batch_code=lot.batch_code,
            ingredient_type_id=lot.ingredient_type_id,
            ingredient_type_name=lot.ingredient_type.name if lot.ingredient_type else None,
            received_at=lot.received_at,
            best_before=lot.best_before,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lot_id": self.lot_id,
            "batch_code": self.batch_code,
            "ingredient_type_id": self.ingredient_type_id,
            "ingredient_type_name": self.ingredient_type_name,
            "received_at": _iso(self.received_at),
            "best_before": _iso(self.best_before),
        }


@dataclass(frozen=True)
class BatchSummary:
    """A dough or filling batch as it appears in a trace."""

    batch_id: int
    code: str
    batch_type: str  # "Dough" or "Filling"
    name: str
    made_at: datetime

    @classmethod
    def from_model(cls, batch) -> "BatchSummary":
        return cls(
            batch_id=batch.id,
            code=batch.code,
            batch_type=batch.batch_type,
            name=batch.name,
            made_at=batch.made_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "code": self.code,
            "batch_type": self.batch_type,
            "name": self.name,
            "made_at": _iso(self.made_at),
        }


@dataclass(frozen=True)
class ProductQuantity:
    product_id: int
    product_name: Optional[str]
    quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
        }


@dataclass(frozen=True)
class RunSummary:
    """A production run with its (product, quantity) outputs.

    Outputs are kept as recorded; the same product may appear twice.
    """

    run_id: int
    product_batch_code: str
    run_at: datetime
    created_by: str
    products: List[ProductQuantity] = field(default_factory=list)

    @classmethod
    def from_model(cls, run) -> "RunSummary":
        return cls(
            run_id=run.id,
            product_batch_code=run.product_batch_code,
            run_at=run.run_at,
            created_by=run.created_by,
            products=[
                ProductQuantity(
                    product_id=output.product_id,
                    product_name=output.product.name if output.product else None,
                    quantity=output.quantity,
                )
                for output in run.outputs
            ],
        )

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.products)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "product_batch_code": self.product_batch_code,
            "run_at": _iso(self.run_at),
            "created_by": self.created_by,
            "products": [item.to_dict() for item in self.products],
            "total_quantity": self.total_quantity,
        }


@dataclass
class RunGenealogy:
    """One matched run with the batches and lots that went into it."""

    run: RunSummary
    batches: List[BatchSummary] = field(default_factory=list)
    lots: List[LotSummary] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run": self.run.to_dict(),
            "batches": [batch.to_dict() for batch in self.batches],
            "lots": [lot.to_dict() for lot in self.lots],
        }


@dataclass
class GenealogyReport:
    """Result of a backward trace.

    Attributes:
        query: The run id or product batch code that was traced
        runs: One entry per matched run, in run order
        missing_references: Link rows whose target no longer exists
    """

    query: Union[int, str]
    runs: List[RunGenealogy] = field(default_factory=list)
    missing_references: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.runs

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "runs": [entry.to_dict() for entry in self.runs],
            "run_count": len(self.runs),
            "missing_references": self.missing_references,
        }


@dataclass
class ImpactReport:
    """Result of a forward trace (recall impact).

    The same shape is returned for every query kind. ``matched_lots`` is only
    populated for ingredient-lot queries.

    Attributes:
        query: The code that was searched for
        query_kind: TraceQueryKind value
        matched_lots: Lots whose supplier batch code matched
        impacted_batches: Batches that consumed a matched lot, matched by
                          code, or fed a matched run
        impacted_runs: Runs reached from the impacted batches (or matched)
        missing_references: Link rows whose target no longer exists
    """

    query: str
    query_kind: str
    matched_lots: List[LotSummary] = field(default_factory=list)
    impacted_batches: List[BatchSummary] = field(default_factory=list)
    impacted_runs: List[RunSummary] = field(default_factory=list)
    missing_references: int = 0

    @property
    def matched_lot_count(self) -> int:
        return len(self.matched_lots)

    @property
    def impacted_batch_count(self) -> int:
        return len(self.impacted_batches)

    @property
    def impacted_run_count(self) -> int:
        return len(self.impacted_runs)

    @property
    def total_quantity(self) -> int:
        """Sum of every (product, quantity) pair over all impacted runs."""
        return sum(run.total_quantity for run in self.impacted_runs)

    @property
    def is_empty(self) -> bool:
        return not (self.matched_lots or self.impacted_batches or self.impacted_runs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "query_kind": self.query_kind,
            "matched_lots": [lot.to_dict() for lot in self.matched_lots],
            "impacted_batches": [batch.to_dict() for batch in self.impacted_batches],
            "impacted_runs": [run.to_dict() for run in self.impacted_runs],
            "matched_lot_count": self.matched_lot_count,
            "impacted_batch_count": self.impacted_batch_count,
            "impacted_run_count": self.impacted_run_count,
            "total_quantity": self.total_quantity,
            "missing_references": self.missing_references,
        }
