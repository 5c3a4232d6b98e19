"""Tests for dough and filling batch creation."""

import logging
from datetime import date, datetime

import pytest

from bakery_trace.models import BatchType, DailyActiveLogEntry, IntermediateBatch
from bakery_trace.services import audit_service, batch_service, receiving_service
from bakery_trace.services.database import session_scope
from bakery_trace.services.exceptions import (
    EmptyBatchError,
    IngredientLotNotFound,
    IntermediateBatchNotFound,
    InvariantViolation,
    ValidationError,
)


@pytest.fixture
def flour_lot(flour_type):
    return receiving_service.receive_lot(
        flour_type["id"], "FL-1", "alice", received_at=datetime(2025, 1, 1, 7, 0)
    )


class TestCreateIntermediateBatch:
    def test_creates_batch_with_links(self, flour_lot):
        batch = batch_service.create_intermediate_batch(
            "DOUGH-01", BatchType.DOUGH, "Sweet dough", "bob", [flour_lot["id"]],
            made_at=datetime(2025, 1, 1, 9, 0),
        )

        assert batch["code"] == "DOUGH-01"
        assert batch["batch_type"] == "Dough"
        assert batch["lot_ids"] == [flour_lot["id"]]
        assert batch["active_log"] == [
            {"ingredient_type_id": flour_lot["ingredient_type_id"], "lot_id": flour_lot["id"]}
        ]

    def test_duplicate_lot_ids_collapse(self, flour_lot):
        batch = batch_service.create_intermediate_batch(
            "DOUGH-01", "Dough", "Sweet dough", "bob", [flour_lot["id"], flour_lot["id"]]
        )

        assert batch["lot_ids"] == [flour_lot["id"]]

    def test_empty_lot_set_rejected(self, test_db):
        with pytest.raises(EmptyBatchError) as exc_info:
            batch_service.create_intermediate_batch("DOUGH-01", "Dough", "Sweet dough", "bob", [])

        assert isinstance(exc_info.value, InvariantViolation)
        with session_scope() as session:
            assert session.query(IntermediateBatch).count() == 0

    def test_unknown_lot_rejected(self, flour_lot):
        with pytest.raises(IngredientLotNotFound):
            batch_service.create_intermediate_batch(
                "DOUGH-01", "Dough", "Sweet dough", "bob", [flour_lot["id"], 9999]
            )

        with session_scope() as session:
            assert session.query(IntermediateBatch).count() == 0

    def test_validation(self, flour_lot):
        with pytest.raises(ValidationError) as exc_info:
            batch_service.create_intermediate_batch("", "Pastry", "", "", [flour_lot["id"]])

        assert len(exc_info.value.errors) == 4

    def test_upserts_daily_log_on_made_date(self, flour_type, flour_lot):
        batch_service.create_intermediate_batch(
            "DOUGH-01", "Dough", "Sweet dough", "bob", [flour_lot["id"]],
            made_at=datetime(2025, 1, 4, 9, 0),
        )

        with session_scope() as session:
            entry = session.query(DailyActiveLogEntry).one()
            assert entry.log_date == date(2025, 1, 4)
            assert entry.ingredient_type_id == flour_type["id"]
            assert entry.active_lot_id == flour_lot["id"]

    def test_second_batch_replaces_daily_log_entry(self, flour_type, flour_lot):
        other = receiving_service.receive_lot(flour_type["id"], "FL-2", "alice")
        day = date(2025, 1, 4)

        batch_service.create_intermediate_batch(
            "DOUGH-01", "Dough", "Dough", "bob", [flour_lot["id"]], active_date=day
        )
        batch_service.create_intermediate_batch(
            "DOUGH-02", "Dough", "Dough", "bob", [other["id"]], active_date=day
        )

        with session_scope() as session:
            entries = session.query(DailyActiveLogEntry).all()
            assert len(entries) == 1
            assert entries[0].active_lot_id == other["id"]

    def test_audit_and_log(self, flour_lot, caplog):
        with caplog.at_level(logging.INFO, logger="bakery_trace.services.batch_service"):
            batch = batch_service.create_intermediate_batch(
                "DOUGH-01", "Dough", "Sweet dough", "bob", [flour_lot["id"]]
            )

        events = audit_service.get_audit_events(
            entity_type="IntermediateBatch", entity_id=batch["id"]
        )
        assert [e["action"] for e in events] == [audit_service.CREATE_BATCH]
        record = next(
            r for r in caplog.records if r.getMessage() == "create_intermediate_batch: success"
        )
        assert record.lot_count == 1


class TestQueries:
    def test_get_batch(self, recall_scenario):
        batch_id = recall_scenario["batches"]["fill_03"]["id"]

        batch = batch_service.get_intermediate_batch(batch_id)

        assert batch["code"] == "FILL-03"
        assert batch["lot_ids"] == [recall_scenario["lots"]["jam"]["id"]]

    def test_get_missing_batch(self, test_db):
        with pytest.raises(IntermediateBatchNotFound):
            batch_service.get_intermediate_batch(9999)

    def test_get_batches_by_type_and_day(self, recall_scenario):
        doughs = batch_service.get_batches(batch_type=BatchType.DOUGH)
        same_day = batch_service.get_batches(on_date=date(2025, 1, 2))
        other_day = batch_service.get_batches(on_date=date(2025, 1, 3))

        assert [b["code"] for b in doughs] == ["DOUGH-10", "DOUGH-11", "DOUGH-99"]
        assert len(same_day) == 4
        assert other_day == []

    def test_generate_batch_code(self, recall_scenario):
        assert batch_service.generate_batch_code(BatchType.DOUGH) == "DOUGH-004"
        assert batch_service.generate_batch_code("Filling") == "FILL-002"


class TestDeleteBatch:
    def test_delete_removes_batch_and_links(self, recall_scenario):
        batch_id = recall_scenario["batches"]["dough_99"]["id"]

        batch_service.delete_intermediate_batch(batch_id, user="admin")

        with pytest.raises(IntermediateBatchNotFound):
            batch_service.get_intermediate_batch(batch_id)

    def test_delete_consumed_batch_warns(self, recall_scenario, caplog):
        batch_id = recall_scenario["batches"]["dough_10"]["id"]

        with caplog.at_level(logging.WARNING, logger="bakery_trace.services.batch_service"):
            batch_service.delete_intermediate_batch(batch_id)

        assert "delete_intermediate_batch: deleted_consumed_batch" in [
            r.getMessage() for r in caplog.records
        ]

    def test_delete_missing(self, test_db):
        with pytest.raises(IntermediateBatchNotFound):
            batch_service.delete_intermediate_batch(9999)
