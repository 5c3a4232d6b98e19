"""Genealogy Index - bidirectional adjacency over the link tables.

Two link tables describe the whole genealogy graph:

    IngredientLot --(BatchIngredientLink)--> IntermediateBatch
    IntermediateBatch --(RunBatchLink)--> ProductionRun

The index turns them into four id mappings so tracers walk the graph in
either direction without re-querying. Values are de-duplicated and kept in
link-insertion order.

``build`` is nothing more than ``add_batch_link`` / ``add_run_link`` applied
to every link row in id order, so an index maintained incrementally and a
freshly built one compare equal.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from bakery_trace.services.entity_store import EntityStore
from bakery_trace.services.logging_utils import get_service_logger

logger = get_service_logger(__name__)


def _append_unique(mapping: Dict[int, List[int]], key: int, value: int) -> None:
    values = mapping.setdefault(key, [])
    if value not in values:
        values.append(value)


@dataclass
class GenealogyIndex:
    lot_to_batches: Dict[int, List[int]] = field(default_factory=dict)
    batch_to_lots: Dict[int, List[int]] = field(default_factory=dict)
    batch_to_runs: Dict[int, List[int]] = field(default_factory=dict)
    run_to_batches: Dict[int, List[int]] = field(default_factory=dict)

    @classmethod
    def build(cls, store: EntityStore) -> "GenealogyIndex":
        """Build the index from every link row in the store."""
        index = cls()
        batch_links = store.list_batch_ingredient_links()
        run_links = store.list_run_batch_links()
        for link in batch_links:
            index.add_batch_link(link.batch_id, link.lot_id)
        for link in run_links:
            index.add_run_link(link.production_run_id, link.batch_id)
        logger.debug(
            "Built genealogy index from %d lot links and %d run links",
            len(batch_links),
            len(run_links),
        )
        return index

    def add_batch_link(self, batch_id: int, lot_id: int) -> None:
        """Record that a batch consumed a lot."""
        _append_unique(self.lot_to_batches, lot_id, batch_id)
        _append_unique(self.batch_to_lots, batch_id, lot_id)

    def add_run_link(self, production_run_id: int, batch_id: int) -> None:
        """Record that a production run consumed a batch."""
        _append_unique(self.batch_to_runs, batch_id, production_run_id)
        _append_unique(self.run_to_batches, production_run_id, batch_id)

    def batches_for_lot(self, lot_id: int) -> Tuple[int, ...]:
        return tuple(self.lot_to_batches.get(lot_id, ()))

    def lots_for_batch(self, batch_id: int) -> Tuple[int, ...]:
        return tuple(self.batch_to_lots.get(batch_id, ()))

    def runs_for_batch(self, batch_id: int) -> Tuple[int, ...]:
        return tuple(self.batch_to_runs.get(batch_id, ()))

    def batches_for_run(self, production_run_id: int) -> Tuple[int, ...]:
        return tuple(self.run_to_batches.get(production_run_id, ()))
