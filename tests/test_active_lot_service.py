"""Tests for active lot resolution and the daily log."""

import logging
from datetime import date, datetime

import pytest

from bakery_trace.services import (
    active_lot_service,
    audit_service,
    batch_service,
    receiving_service,
)
from bakery_trace.services.active_lot_service import (
    RESOLVED_FROM_CARRY_FORWARD,
    RESOLVED_FROM_DAILY_LOG,
    RESOLVED_FROM_OVERRIDE,
    clear_active_lot,
    get_daily_log,
    resolve_active_lot,
    select_batch_lots,
    set_active_lot,
)
from bakery_trace.services.exceptions import (
    IngredientLotNotFound,
    IngredientTypeNotFound,
    IngredientUnavailableError,
    ValidationError,
)


@pytest.fixture
def sugar_lots(sugar_type):
    """Sugar received on day 1 and day 3."""
    day_1 = receiving_service.receive_lot(
        sugar_type["id"], "SUG-D1", "alice", received_at=datetime(2025, 1, 1, 8, 0)
    )
    day_3 = receiving_service.receive_lot(
        sugar_type["id"], "SUG-D3", "alice", received_at=datetime(2025, 1, 3, 8, 0)
    )
    return day_1, day_3


class TestResolveActiveLot:
    def test_carry_forward_uses_latest_receipt(self, sugar_type, sugar_lots):
        lot = resolve_active_lot(date(2025, 1, 5), sugar_type["id"])

        assert lot["batch_code"] == "SUG-D3"
        assert lot["resolved_from"] == RESOLVED_FROM_CARRY_FORWARD

    def test_fallback_ignores_the_query_date(self, sugar_type, sugar_lots):
        lot = resolve_active_lot(date(2025, 1, 2), sugar_type["id"])

        assert lot["batch_code"] == "SUG-D3"

    def test_fallback_tie_goes_to_later_insert(self, sugar_type):
        at = datetime(2025, 1, 1, 8, 0)
        receiving_service.receive_lot(sugar_type["id"], "SUG-A", "alice", received_at=at)
        receiving_service.receive_lot(sugar_type["id"], "SUG-B", "alice", received_at=at)

        assert resolve_active_lot(date(2025, 1, 1), sugar_type["id"])["batch_code"] == "SUG-B"

    def test_daily_log_wins(self, sugar_type, sugar_lots):
        day_1, _ = sugar_lots
        set_active_lot(date(2025, 1, 5), sugar_type["id"], day_1["id"], user="bob")

        lot = resolve_active_lot(date(2025, 1, 5), sugar_type["id"])

        assert lot["id"] == day_1["id"]
        assert lot["resolved_from"] == RESOLVED_FROM_DAILY_LOG

    def test_daily_log_only_applies_to_its_date(self, sugar_type, sugar_lots):
        day_1, _ = sugar_lots
        set_active_lot(date(2025, 1, 5), sugar_type["id"], day_1["id"])

        assert resolve_active_lot(date(2025, 1, 6), sugar_type["id"])["batch_code"] == "SUG-D3"

    def test_no_lots_returns_none(self, sugar_type):
        assert resolve_active_lot(date(2025, 1, 5), sugar_type["id"]) is None

    def test_log_entry_for_deleted_lot_falls_back(self, sugar_type, sugar_lots, caplog):
        day_1, _ = sugar_lots
        set_active_lot(date(2025, 1, 5), sugar_type["id"], day_1["id"])
        receiving_service.delete_ingredient_lot(day_1["id"])

        with caplog.at_level(logging.WARNING, logger="bakery_trace.services.active_lot_service"):
            lot = resolve_active_lot(date(2025, 1, 5), sugar_type["id"])

        assert lot["batch_code"] == "SUG-D3"
        assert lot["resolved_from"] == RESOLVED_FROM_CARRY_FORWARD
        assert "resolve_active_lot: dangling_log_entry" in [r.getMessage() for r in caplog.records]


class TestSetActiveLot:
    def test_replaces_previous_choice(self, sugar_type, sugar_lots):
        day_1, day_3 = sugar_lots
        set_active_lot(date(2025, 1, 5), sugar_type["id"], day_1["id"])
        entry = set_active_lot(date(2025, 1, 5), sugar_type["id"], day_3["id"])

        assert entry["active_lot_id"] == day_3["id"]
        assert resolve_active_lot(date(2025, 1, 5), sugar_type["id"])["id"] == day_3["id"]

    def test_unknown_type(self, sugar_lots):
        with pytest.raises(IngredientTypeNotFound):
            set_active_lot(date(2025, 1, 5), 9999, sugar_lots[0]["id"])

    def test_unknown_lot(self, sugar_type):
        with pytest.raises(IngredientLotNotFound):
            set_active_lot(date(2025, 1, 5), sugar_type["id"], 9999)

    def test_lot_of_other_type(self, sugar_type, flour_type):
        flour = receiving_service.receive_lot(flour_type["id"], "FL-1", "alice")

        with pytest.raises(ValidationError):
            set_active_lot(date(2025, 1, 5), sugar_type["id"], flour["id"])


class TestClearActiveLot:
    def test_restores_carry_forward(self, sugar_type, sugar_lots):
        day_1, _ = sugar_lots
        set_active_lot(date(2025, 1, 5), sugar_type["id"], day_1["id"])

        assert clear_active_lot(date(2025, 1, 5), sugar_type["id"], user="admin") is True

        lot = resolve_active_lot(date(2025, 1, 5), sugar_type["id"])
        assert lot["batch_code"] == "SUG-D3"
        assert lot["resolved_from"] == RESOLVED_FROM_CARRY_FORWARD

    def test_only_clears_its_date(self, sugar_type, sugar_lots):
        day_1, _ = sugar_lots
        set_active_lot(date(2025, 1, 5), sugar_type["id"], day_1["id"])
        set_active_lot(date(2025, 1, 6), sugar_type["id"], day_1["id"])

        clear_active_lot(date(2025, 1, 5), sugar_type["id"])

        lot = resolve_active_lot(date(2025, 1, 6), sugar_type["id"])
        assert lot["resolved_from"] == RESOLVED_FROM_DAILY_LOG

    def test_nothing_to_clear(self, sugar_type):
        assert clear_active_lot(date(2025, 1, 5), sugar_type["id"]) is False
        assert audit_service.get_audit_events(action=audit_service.CLEAR_DAILY_LOG) == []

    def test_clearing_is_audited(self, sugar_type, sugar_lots):
        set_active_lot(date(2025, 1, 5), sugar_type["id"], sugar_lots[0]["id"])

        clear_active_lot(date(2025, 1, 5), sugar_type["id"], user="admin")

        events = audit_service.get_audit_events(action=audit_service.CLEAR_DAILY_LOG)
        assert len(events) == 1
        assert events[0]["user"] == "admin"


class TestDailyLog:
    def test_lists_every_active_type(self, flour_type, sugar_type, sugar_lots):
        rows = get_daily_log(date(2025, 1, 5))

        by_name = {row["ingredient_type_name"]: row for row in rows}
        assert by_name["Flour"]["lot"] is None
        assert by_name["Flour"]["resolved_from"] is None
        assert by_name["Sugar"]["lot"]["batch_code"] == "SUG-D3"

    def test_batch_creation_confirms_lots(self, sugar_type, sugar_lots):
        day_1, _ = sugar_lots
        batch_service.create_intermediate_batch(
            "FILL-1", "Filling", "Syrup", "bob", [day_1["id"]], active_date=date(2025, 1, 5)
        )

        lot = resolve_active_lot(date(2025, 1, 5), sugar_type["id"])

        assert lot["id"] == day_1["id"]
        assert lot["resolved_from"] == RESOLVED_FROM_DAILY_LOG


class TestSelectBatchLots:
    def test_uses_resolver_suggestion(self, sugar_type, sugar_lots):
        result = select_batch_lots([sugar_type["id"]], on_date=date(2025, 1, 5))

        assert result["lot_ids"] == [sugar_lots[1]["id"]]
        assert result["selections"][0]["resolved_from"] == RESOLVED_FROM_CARRY_FORWARD
        assert result["missing"] == []

    def test_override_wins(self, sugar_type, sugar_lots):
        result = select_batch_lots(
            [sugar_type["id"]],
            on_date=date(2025, 1, 5),
            overrides={sugar_type["id"]: sugar_lots[0]["id"]},
        )

        assert result["lot_ids"] == [sugar_lots[0]["id"]]
        assert result["selections"][0]["resolved_from"] == RESOLVED_FROM_OVERRIDE

    def test_required_type_without_lot_raises(self, flour_type, sugar_type, sugar_lots):
        with pytest.raises(IngredientUnavailableError) as exc_info:
            select_batch_lots([sugar_type["id"], flour_type["id"]], on_date=date(2025, 1, 5))

        assert exc_info.value.ingredient_type_ids == [flour_type["id"]]

    def test_optional_type_without_lot_is_reported(self, flour_type, sugar_type, sugar_lots):
        result = select_batch_lots(
            [sugar_type["id"]], [flour_type["id"]], on_date=date(2025, 1, 5)
        )

        assert result["lot_ids"] == [sugar_lots[1]["id"]]
        assert result["missing"] == [flour_type["id"]]

    def test_override_of_wrong_type(self, flour_type, sugar_type, sugar_lots):
        with pytest.raises(ValidationError):
            active_lot_service.select_batch_lots(
                [flour_type["id"]], overrides={flour_type["id"]: sugar_lots[0]["id"]}
            )

    def test_repeated_type_selected_once(self, flour_type, sugar_type, sugar_lots):
        result = select_batch_lots(
            [sugar_type["id"], sugar_type["id"]], [sugar_type["id"]], on_date=date(2025, 1, 5)
        )

        assert result["lot_ids"] == [sugar_lots[1]["id"]]
        assert len(result["selections"]) == 1
