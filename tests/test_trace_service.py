"""Tests for backward and forward genealogy traces."""

import logging

import pytest

from bakery_trace.models import TraceQueryKind
from bakery_trace.services import batch_service, receiving_service
from bakery_trace.services.exceptions import IngredientLotNotFound
from bakery_trace.services.trace_service import trace_backward, trace_forward, trace_lot


LOT = TraceQueryKind.INGREDIENT_LOT_BY_CODE
BATCH = TraceQueryKind.INTERMEDIATE_BATCH_BY_CODE
PRODUCT = TraceQueryKind.PRODUCT_BATCH_CODE_DIRECT


# =============================================================================
# Backward trace
# =============================================================================


class TestTraceBackward:
    def test_simple_chain(self, simple_chain):
        report = trace_backward("250101")

        assert len(report.runs) == 1
        entry = report.runs[0]
        assert entry.run.product_batch_code == "250101"
        assert [(p.product_name, p.quantity) for p in entry.run.products] == [("Cake A", 20)]
        assert [b.code for b in entry.batches] == ["DOUGH-01"]
        assert entry.batches[0].batch_type == "Dough"
        assert [lot.batch_code for lot in entry.lots] == ["FL-001"]
        assert entry.lots[0].ingredient_type_name == "Flour"
        assert entry.lots[0].best_before.isoformat() == "2025-06-30"
        assert report.missing_references == 0

    def test_by_run_id(self, simple_chain):
        report = trace_backward(simple_chain["run"]["id"])

        assert [entry.run.run_id for entry in report.runs] == [simple_chain["run"]["id"]]

    def test_unknown_run_id_gives_empty_report(self, simple_chain):
        report = trace_backward(99999)

        assert report.is_empty
        assert report.runs == []

    def test_bool_is_not_a_run_id(self, simple_chain):
        assert simple_chain["run"]["id"] == 1

        with pytest.raises(TypeError):
            trace_backward(True)

    def test_substring_matches_multiple_runs_in_run_order(self, recall_scenario):
        report = trace_backward("2501")

        assert [entry.run.product_batch_code for entry in report.runs] == ["250102", "250103"]

    def test_dough_and_filling_with_deduplicated_lots(self, recall_scenario):
        report = trace_backward("250103")

        entry = report.runs[0]
        assert [(b.code, b.batch_type) for b in entry.batches] == [
            ("DOUGH-11", "Dough"),
            ("FILL-03", "Filling"),
        ]
        assert [lot.batch_code for lot in entry.lots] == ["FL-23-001", "JAM-7"]

    def test_lots_deduplicated_across_batches(self, test_db, flour_type, cake_a):
        from bakery_trace.services import production_run_service

        lot = receiving_service.receive_lot(flour_type["id"], "FL-5", "alice")
        first = batch_service.create_intermediate_batch(
            "D-1", "Dough", "Dough", "bob", [lot["id"]]
        )
        second = batch_service.create_intermediate_batch(
            "D-2", "Dough", "Dough", "bob", [lot["id"]]
        )
        production_run_service.create_production_run(
            "P-1", "carol", [(cake_a["id"], 4)], dough_batch_ids=[first["id"], second["id"]]
        )

        entry = trace_backward("P-1").runs[0]

        assert len(entry.batches) == 2
        assert [item.lot_id for item in entry.lots] == [lot["id"]]

    def test_no_match_gives_empty_report(self, recall_scenario):
        report = trace_backward("NOPE")

        assert report.is_empty
        assert report.to_dict()["run_count"] == 0

    def test_blank_query_matches_nothing(self, recall_scenario):
        assert trace_backward("   ").is_empty

    def test_case_insensitive(self, test_db, flour_type, cake_a):
        from bakery_trace.services import production_run_service

        lot = receiving_service.receive_lot(flour_type["id"], "FL-5", "alice")
        batch = batch_service.create_intermediate_batch(
            "D-1", "Dough", "Dough", "bob", [lot["id"]]
        )
        production_run_service.create_production_run(
            "Lot-ABC", "carol", [(cake_a["id"], 1)], dough_batch_ids=[batch["id"]]
        )

        assert len(trace_backward("lot-abc").runs) == 1
        assert len(trace_backward("ABC").runs) == 1


# =============================================================================
# Forward trace
# =============================================================================


class TestTraceForward:
    def test_lot_quantity_aggregation(self, recall_scenario):
        report = trace_forward("FL-23", LOT)

        assert [lot.batch_code for lot in report.matched_lots] == ["FL-23-001"]
        assert [b.code for b in report.impacted_batches] == ["DOUGH-10", "DOUGH-11"]
        assert [r.product_batch_code for r in report.impacted_runs] == ["250102", "250103"]
        assert report.impacted_run_count == 2
        assert report.total_quantity == 18

    def test_simple_chain_forward(self, simple_chain):
        report = trace_forward("FL-001", LOT)

        assert report.matched_lot_count == 1
        assert report.impacted_batch_count == 1
        assert report.impacted_run_count == 1
        assert report.total_quantity == 20

    def test_multiple_lot_matches(self, recall_scenario):
        report = trace_forward("fl", LOT)

        assert [lot.batch_code for lot in report.matched_lots] == ["FL-23-001", "FL-99"]
        assert [b.code for b in report.impacted_batches] == ["DOUGH-10", "DOUGH-11", "DOUGH-99"]
        assert report.impacted_run_count == 2

    def test_ingredient_type_filter(self, recall_scenario, flour_type, jam_type):
        assert trace_forward("JAM", LOT, ingredient_type_id=flour_type["id"]).is_empty

        report = trace_forward("JAM", LOT, ingredient_type_id=jam_type["id"])
        assert [b.code for b in report.impacted_batches] == ["FILL-03"]
        assert [r.product_batch_code for r in report.impacted_runs] == ["250103"]
        assert report.total_quantity == 8

    def test_orphan_batch(self, recall_scenario):
        report = trace_forward("DOUGH-99", BATCH)

        assert report.matched_lots == []
        assert report.impacted_batch_count == 1
        assert report.impacted_run_count == 0
        assert report.total_quantity == 0
        assert not report.is_empty

    def test_batch_substring(self, recall_scenario):
        report = trace_forward("dough-1", BATCH)

        assert [b.code for b in report.impacted_batches] == ["DOUGH-10", "DOUGH-11"]
        assert report.total_quantity == 18

    def test_product_code_direct(self, recall_scenario):
        report = trace_forward("250103", PRODUCT)

        assert report.matched_lots == []
        assert [b.code for b in report.impacted_batches] == ["DOUGH-11", "FILL-03"]
        assert [r.product_batch_code for r in report.impacted_runs] == ["250103"]
        assert report.total_quantity == 8

    def test_accepts_kind_value(self, recall_scenario):
        report = trace_forward("250102", "product_batch_code_direct")

        assert report.query_kind == PRODUCT.value
        assert report.impacted_run_count == 1

    def test_unknown_kind_rejected(self, recall_scenario):
        with pytest.raises(ValueError):
            trace_forward("250102", "by_colour")

    def test_zero_matches(self, recall_scenario):
        report = trace_forward("XYZ", LOT)

        assert report.is_empty
        assert report.to_dict()["total_quantity"] == 0
        assert report.to_dict()["impacted_runs"] == []

    def test_blank_query_matches_nothing(self, recall_scenario):
        assert trace_forward("", LOT).is_empty
        assert trace_forward("  ", BATCH).is_empty

    def test_same_product_twice_in_run_is_summed(self, test_db, flour_type, cake_a):
        from bakery_trace.services import production_run_service

        lot = receiving_service.receive_lot(flour_type["id"], "FL-5", "alice")
        batch = batch_service.create_intermediate_batch(
            "D-1", "Dough", "Dough", "bob", [lot["id"]]
        )
        production_run_service.create_production_run(
            "P-1", "carol", [(cake_a["id"], 10), (cake_a["id"], 5)],
            dough_batch_ids=[batch["id"]],
        )

        assert trace_forward("FL-5", LOT).total_quantity == 15

    def test_to_dict_shape_is_the_same_for_every_kind(self, recall_scenario):
        keys = None
        for query, kind in (("FL-23", LOT), ("DOUGH-10", BATCH), ("250102", PRODUCT)):
            data = trace_forward(query, kind).to_dict()
            if keys is None:
                keys = set(data)
            assert set(data) == keys


class TestTraceLot:
    def test_trace_lot(self, recall_scenario):
        lot_id = recall_scenario["lots"]["flour"]["id"]

        report = trace_lot(lot_id)

        assert report.query == "FL-23-001"
        assert report.total_quantity == 18

    def test_unknown_lot(self, recall_scenario):
        with pytest.raises(IngredientLotNotFound):
            trace_lot(99999)


# =============================================================================
# Properties
# =============================================================================


class TestInverseConsistency:
    def test_backward_lots_reach_the_run_forward(self, recall_scenario):
        for entry in trace_backward("2501").runs:
            for lot in entry.lots:
                forward = trace_lot(lot.lot_id)
                assert entry.run.run_id in [r.run_id for r in forward.impacted_runs]

    def test_forward_runs_contain_the_lot_backward(self, recall_scenario):
        for lot in recall_scenario["lots"].values():
            for run in trace_lot(lot["id"]).impacted_runs:
                backward = trace_backward(run.run_id)
                assert lot["id"] in [item.lot_id for item in backward.runs[0].lots]

    def test_traces_are_deterministic(self, recall_scenario):
        assert trace_forward("fl", LOT).to_dict() == trace_forward("fl", LOT).to_dict()
        assert trace_backward("2501").to_dict() == trace_backward("2501").to_dict()


class TestDanglingReferences:
    def test_deleted_lot_is_skipped_backward(self, recall_scenario):
        receiving_service.delete_ingredient_lot(recall_scenario["lots"]["sugar"]["id"])

        report = trace_backward("250102")

        assert [lot.batch_code for lot in report.runs[0].lots] == ["FL-23-001"]
        assert report.missing_references == 1

    def test_deleted_batch_is_skipped_both_ways(self, recall_scenario):
        batch_service.delete_intermediate_batch(recall_scenario["batches"]["fill_03"]["id"])

        backward = trace_backward("250103")
        assert [b.code for b in backward.runs[0].batches] == ["DOUGH-11"]
        assert backward.missing_references == 1

        forward = trace_forward("250103", PRODUCT)
        assert [b.code for b in forward.impacted_batches] == ["DOUGH-11"]
        assert forward.missing_references == 1

        jam = trace_forward("JAM-7", LOT)
        assert jam.matched_lot_count == 1
        assert jam.impacted_run_count == 0

    def test_run_without_resolvable_batches_still_appears(self, simple_chain):
        batch_service.delete_intermediate_batch(simple_chain["batch"]["id"])

        report = trace_backward("250101")

        assert len(report.runs) == 1
        assert report.runs[0].batches == []
        assert report.runs[0].lots == []
        assert report.missing_references == 1

    def test_missing_references_logged_as_warning(self, recall_scenario, caplog):
        receiving_service.delete_ingredient_lot(recall_scenario["lots"]["sugar"]["id"])

        with caplog.at_level(logging.WARNING, logger="bakery_trace.services.trace_service"):
            trace_backward("250102")

        warnings = [
            r for r in caplog.records
            if r.name == "bakery_trace.services.trace_service" and r.levelno == logging.WARNING
        ]
        assert warnings
        assert warnings[0].outcome == "missing_references"
        assert warnings[0].missing_references == 1


class TestTraceLogging:
    def test_forward_trace_logs_counts_at_debug(self, recall_scenario, caplog):
        with caplog.at_level(logging.DEBUG, logger="bakery_trace.services.trace_service"):
            trace_forward("FL-23", LOT)

        records = [r for r in caplog.records if r.getMessage() == "trace_forward: success"]
        assert len(records) == 1
        assert records[0].levelno == logging.DEBUG
        assert records[0].run_count == 2
        assert records[0].total_quantity == 18

    def test_empty_match_logged(self, recall_scenario, caplog):
        with caplog.at_level(logging.DEBUG, logger="bakery_trace.services.trace_service"):
            trace_forward("XYZ", LOT)

        assert "trace_forward: empty_match" in [r.getMessage() for r in caplog.records]
