"""Entity Store - read/insert contract over the genealogy tables.

The resolver, the genealogy indexer and the tracers never query the ORM
directly. They are handed an ``EntityStore`` wrapping the caller's session,
so every trace reads one consistent snapshot and the store can be swapped
for tests.

Ordering is part of the contract. Every list operation returns rows in a
stable order so that trace output is deterministic for identical data:

- ingredient lots: received_at, then id (insertion sequence)
- intermediate batches: made_at, then id
- production runs: run_at, then id
- link rows: id

Example Usage:
    >>> with session_scope() as session:
    ...     store = EntityStore(session)
    ...     flour_lots = store.list_ingredient_lots(ingredient_type_id=1)
"""

from datetime import date
from typing import Callable, List, Optional, TypeVar

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, joinedload, selectinload

from bakery_trace.models import (
    BatchIngredientLink,
    BatchType,
    DailyActiveLogEntry,
    IngredientLot,
    IngredientType,
    IntermediateBatch,
    ProductionRun,
    ProductionRunOutput,
    RunBatchLink,
)
from bakery_trace.utils.datetime_utils import utc_now

T = TypeVar("T")
Predicate = Optional[Callable[[T], bool]]


def _apply(rows: List[T], predicate: Predicate) -> List[T]:
    if predicate is None:
        return rows
    return [row for row in rows if predicate(row)]


class EntityStore:
    """Handle over a SQLAlchemy session exposing the store operations.

    Args:
        session: Open session; the caller owns its transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Lookups by id
    # ------------------------------------------------------------------

    def get_ingredient_type(self, ingredient_type_id: int) -> Optional[IngredientType]:
        return (
            self.session.query(IngredientType)
            .filter(IngredientType.id == ingredient_type_id)
            .first()
        )

    def get_ingredient_lot(self, lot_id: int) -> Optional[IngredientLot]:
        return (
            self.session.query(IngredientLot)
            .options(joinedload(IngredientLot.ingredient_type))
            .filter(IngredientLot.id == lot_id)
            .first()
        )

    def get_intermediate_batch(self, batch_id: int) -> Optional[IntermediateBatch]:
        return (
            self.session.query(IntermediateBatch)
            .options(selectinload(IntermediateBatch.ingredient_links))
            .filter(IntermediateBatch.id == batch_id)
            .first()
        )

    def get_production_run(self, production_run_id: int) -> Optional[ProductionRun]:
        return (
            self._production_run_query()
            .filter(ProductionRun.id == production_run_id)
            .first()
        )

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def list_ingredient_lots(
        self,
        predicate: Predicate = None,
        ingredient_type_id: Optional[int] = None,
    ) -> List[IngredientLot]:
        """List lots ordered by received_at then insertion sequence.

        Args:
            predicate: Optional callable applied to each loaded lot
            ingredient_type_id: Optional ingredient type filter (applied in SQL)
        """
        query = self.session.query(IngredientLot).options(
            joinedload(IngredientLot.ingredient_type)
        )
        if ingredient_type_id is not None:
            query = query.filter(IngredientLot.ingredient_type_id == ingredient_type_id)
        query = query.order_by(IngredientLot.received_at, IngredientLot.id)
        return _apply(query.all(), predicate)

    def list_intermediate_batches(
        self,
        predicate: Predicate = None,
        batch_type: Optional[BatchType] = None,
    ) -> List[IntermediateBatch]:
        """List dough/filling batches ordered by made_at then insertion sequence."""
        query = self.session.query(IntermediateBatch).options(
            selectinload(IntermediateBatch.ingredient_links)
        )
        if batch_type is not None:
            query = query.filter(IntermediateBatch.batch_type == BatchType(batch_type).value)
        query = query.order_by(IntermediateBatch.made_at, IntermediateBatch.id)
        return _apply(query.all(), predicate)

    def list_production_runs(self, predicate: Predicate = None) -> List[ProductionRun]:
        """List production runs ordered by run_at then insertion sequence."""
        query = self._production_run_query().order_by(ProductionRun.run_at, ProductionRun.id)
        return _apply(query.all(), predicate)

    def list_batch_ingredient_links(self) -> List[BatchIngredientLink]:
        return self.session.query(BatchIngredientLink).order_by(BatchIngredientLink.id).all()

    def list_run_batch_links(self) -> List[RunBatchLink]:
        return self.session.query(RunBatchLink).order_by(RunBatchLink.id).all()

    def list_ingredient_types(self, include_inactive: bool = False) -> List[IngredientType]:
        query = self.session.query(IngredientType)
        if not include_inactive:
            query = query.filter(IngredientType.is_active.is_(True))
        return query.order_by(IngredientType.name, IngredientType.id).all()

    # ------------------------------------------------------------------
    # Daily active log
    # ------------------------------------------------------------------

    def get_daily_active_log_entry(
        self, log_date: date, ingredient_type_id: int
    ) -> Optional[DailyActiveLogEntry]:
        return (
            self.session.query(DailyActiveLogEntry)
            .populate_existing()
            .filter(
                DailyActiveLogEntry.log_date == log_date,
                DailyActiveLogEntry.ingredient_type_id == ingredient_type_id,
            )
            .first()
        )

    def list_daily_active_log(self, log_date: date) -> List[DailyActiveLogEntry]:
        return (
            self.session.query(DailyActiveLogEntry)
            .populate_existing()
            .filter(DailyActiveLogEntry.log_date == log_date)
            .order_by(DailyActiveLogEntry.ingredient_type_id)
            .all()
        )

    def upsert_daily_active_log_entry(
        self, log_date: date, ingredient_type_id: int, lot_id: int
    ) -> DailyActiveLogEntry:
        """Insert or replace the active lot for (log_date, ingredient_type_id).

        Executed as one INSERT .. ON CONFLICT DO UPDATE statement, so two
        writers racing on the same key leave exactly one row behind.
        """
        self.session.flush()
        table = DailyActiveLogEntry.__table__
        stmt = sqlite_insert(table).values(
            log_date=log_date,
            ingredient_type_id=ingredient_type_id,
            active_lot_id=lot_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.log_date, table.c.ingredient_type_id],
            set_={
                "active_lot_id": stmt.excluded.active_lot_id,
                "updated_at": utc_now(),
            },
        )
        self.session.execute(stmt)
        return self.get_daily_active_log_entry(log_date, ingredient_type_id)

    def delete_daily_active_log_entry(
        self, log_date: date, ingredient_type_id: int
    ) -> Optional[DailyActiveLogEntry]:
        """Remove the entry for (log_date, ingredient_type_id), if any.

        Returns:
            The deleted entry, or None when there was nothing to remove
        """
        entry = self.get_daily_active_log_entry(log_date, ingredient_type_id)
        if entry is None:
            return None
        self.session.delete(entry)
        self.session.flush()
        return entry

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, entity: T) -> T:
        """Add an entity and flush so it receives its id."""
        self.session.add(entity)
        self.session.flush()
        return entity

    def _production_run_query(self):
        return self.session.query(ProductionRun).options(
            selectinload(ProductionRun.outputs).joinedload(ProductionRunOutput.product),
            selectinload(ProductionRun.batch_links),
        )
