"""Pytest configuration and fixtures for service layer tests."""

from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

from bakery_trace.models.base import Base


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    import bakery_trace.models  # noqa: F401

    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import bakery_trace.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    db_module.get_session_factory = original_get_session


# =============================================================================
# Catalog
# =============================================================================


@pytest.fixture
def flour_type(test_db):
    from bakery_trace.services import catalog_service

    return catalog_service.create_ingredient_type("Flour", "kg")


@pytest.fixture
def sugar_type(test_db):
    from bakery_trace.services import catalog_service

    return catalog_service.create_ingredient_type("Sugar", "kg")


@pytest.fixture
def jam_type(test_db):
    from bakery_trace.services import catalog_service

    return catalog_service.create_ingredient_type("Strawberry Jam", "kg", storage="Chilled")


@pytest.fixture
def cake_a(test_db):
    from bakery_trace.services import catalog_service

    return catalog_service.create_product("Cake A", "CAKE-A")


@pytest.fixture
def cake_b(test_db):
    from bakery_trace.services import catalog_service

    return catalog_service.create_product("Cake B", "CAKE-B", has_filling=True)


# =============================================================================
# Scenarios
# =============================================================================


@pytest.fixture
def simple_chain(flour_type, cake_a):
    """FL-001 -> DOUGH-01 -> product batch 250101 (Cake A x20)."""
    from bakery_trace.services import batch_service, production_run_service, receiving_service

    lot = receiving_service.receive_lot(
        flour_type["id"],
        "FL-001",
        "alice",
        received_at=datetime(2025, 1, 1, 7, 0),
        best_before=date(2025, 6, 30),
    )
    batch = batch_service.create_intermediate_batch(
        "DOUGH-01",
        "Dough",
        "Sweet dough",
        "bob",
        [lot["id"]],
        made_at=datetime(2025, 1, 1, 9, 0),
    )
    run = production_run_service.create_production_run(
        "250101",
        "carol",
        [(cake_a["id"], 20)],
        dough_batch_ids=[batch["id"]],
        run_at=datetime(2025, 1, 1, 13, 0),
    )
    return {"lot": lot, "batch": batch, "run": run}


@pytest.fixture
def recall_scenario(flour_type, sugar_type, jam_type, cake_a, cake_b):
    """Two runs sharing flour lot FL-23-001.

    FL-23-001 + SUG-01 -> DOUGH-10 -> run 250102 (Cake A x10)
    FL-23-001 -> DOUGH-11, JAM-7 -> FILL-03 -> run 250103 (Cake A x5, Cake B x3)
    FL-99 -> DOUGH-99 (never used in a run)
    """
    from bakery_trace.services import batch_service, production_run_service, receiving_service

    day = datetime(2025, 1, 2, 7, 0)
    flour = receiving_service.receive_lot(flour_type["id"], "FL-23-001", "alice", received_at=day)
    sugar = receiving_service.receive_lot(sugar_type["id"], "SUG-01", "alice", received_at=day)
    jam = receiving_service.receive_lot(jam_type["id"], "JAM-7", "alice", received_at=day)
    spare = receiving_service.receive_lot(flour_type["id"], "FL-99", "alice", received_at=day)

    dough_10 = batch_service.create_intermediate_batch(
        "DOUGH-10", "Dough", "Sweet dough", "bob", [flour["id"], sugar["id"]],
        made_at=datetime(2025, 1, 2, 8, 0),
    )
    dough_11 = batch_service.create_intermediate_batch(
        "DOUGH-11", "Dough", "Sweet dough", "bob", [flour["id"]],
        made_at=datetime(2025, 1, 2, 8, 30),
    )
    fill_03 = batch_service.create_intermediate_batch(
        "FILL-03", "Filling", "Jam filling", "bob", [jam["id"]],
        made_at=datetime(2025, 1, 2, 9, 0),
    )
    dough_99 = batch_service.create_intermediate_batch(
        "DOUGH-99", "Dough", "Test dough", "bob", [spare["id"]],
        made_at=datetime(2025, 1, 2, 9, 30),
    )

    run_a = production_run_service.create_production_run(
        "250102", "carol", [(cake_a["id"], 10)],
        dough_batch_ids=[dough_10["id"]],
        run_at=datetime(2025, 1, 2, 12, 0),
    )
    run_b = production_run_service.create_production_run(
        "250103", "carol", [(cake_a["id"], 5), (cake_b["id"], 3)],
        dough_batch_ids=[dough_11["id"]],
        filling_batch_ids=[fill_03["id"]],
        run_at=datetime(2025, 1, 2, 14, 0),
    )
    return {
        "lots": {"flour": flour, "sugar": sugar, "jam": jam, "spare": spare},
        "batches": {"dough_10": dough_10, "dough_11": dough_11, "fill_03": fill_03,
                    "dough_99": dough_99},
        "runs": {"a": run_a, "b": run_b},
    }
