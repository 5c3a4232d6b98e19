"""
Database connection and session management for Bakery Trace.

This module provides:
- Database engine creation and configuration
- Session factory for database operations
- Database initialization (create tables)
- WAL mode configuration
- Foreign key enforcement
"""

from typing import List, Optional
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from ..utils.config import get_config
from ..models.base import Base

logger = logging.getLogger(__name__)

# Tables a trace reads; verify_database() requires all of them
GENEALOGY_TABLES = [
    "ingredient_types",
    "ingredient_lots",
    "daily_active_log",
    "intermediate_batches",
    "batch_ingredient_links",
    "products",
    "production_runs",
    "production_run_outputs",
    "run_batch_links",
]

# Global engine and session factory
_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Set SQLite pragmas on connection.

    Enables foreign key constraints and sets WAL mode for every new
    connection.
    """
    cursor = dbapi_connection.cursor()

    # Enforce declared foreign keys (owning sides of the link tables)
    cursor.execute("PRAGMA foreign_keys=ON")

    # WAL lets trace reads run against the last committed snapshot while a
    # writer is active
    cursor.execute("PRAGMA journal_mode=WAL")

    cursor.execute("PRAGMA synchronous=NORMAL")

    cursor.close()


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create and configure the database engine.

    Args:
        database_url: Optional database URL. If None, uses config default.
        echo: If True, log all SQL statements (useful for debugging)

    Returns:
        Configured SQLAlchemy Engine
    """
    if database_url is None:
        database_url = get_config().database_url

    logger.info(f"Creating database engine: {database_url}")

    if ":memory:" in database_url or "mode=memory" in database_url:
        # In-memory databases (testing) need a single shared connection
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    return engine


def init_database(engine: Optional[Engine] = None) -> None:
    """
    Initialize the database by creating all tables.

    Safe to call multiple times - existing tables won't be recreated.

    Args:
        engine: Optional engine to use. If None, uses global engine.
    """
    if engine is None:
        engine = get_engine()

    logger.info("Initializing database tables")

    # Import all models to ensure they're registered with Base
    from .. import models  # noqa: F401

    Base.metadata.create_all(engine)

    logger.info("Database tables initialized successfully")


def get_engine(force_recreate: bool = False) -> Engine:
    """
    Get the global database engine.

    Args:
        force_recreate: If True, recreate the engine even if one exists

    Returns:
        Database engine
    """
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()

    return _engine


def get_session_factory() -> sessionmaker:
    """
    Get the global session factory.

    Returns:
        Session factory (sessionmaker)
    """
    global _SessionFactory

    if _SessionFactory is None:
        engine = get_engine()
        _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)

    return _SessionFactory


def get_session() -> Session:
    """
    Create a new database session.

    Returns:
        New Session instance
    """
    session_factory = get_session_factory()
    return session_factory()


@contextmanager
def session_scope():
    """
    Provide a transactional scope for database operations.

    - Creates a new session
    - Commits on success
    - Rolls back on exception
    - Always closes the session

    Yields:
        Database session

    Example:
        with session_scope() as session:
            lot = IngredientLot(batch_code="FL-23-001", ...)
            session.add(lot)
            # Commit happens automatically if no exception
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def missing_genealogy_tables(engine: Optional[Engine] = None) -> List[str]:
    """
    List the genealogy tables the database does not have.

    Args:
        engine: Optional engine to inspect. If None, uses global engine.

    Returns:
        Names from GENEALOGY_TABLES that are absent, in declaration order
    """
    if engine is None:
        engine = get_engine()
    present = set(inspect(engine).get_table_names())
    return [table for table in GENEALOGY_TABLES if table not in present]


def verify_database(engine: Optional[Engine] = None) -> bool:
    """
    Verify that the database is accessible and has every genealogy table.

    Returns:
        True if database is valid, False otherwise
    """
    try:
        missing = missing_genealogy_tables(engine)
    except SQLAlchemyError as e:
        logger.error(f"Database verification failed: {e}")
        return False

    if missing:
        logger.warning(f"Database is missing tables: {', '.join(missing)}")
        return False
    return True


def reset_database(confirm: bool = False, engine: Optional[Engine] = None) -> None:
    """
    Drop all tables and recreate the database.

    WARNING: This deletes all genealogy records!

    Args:
        confirm: Must be True to actually reset. Safety check.
        engine: Optional engine to reset. If None, uses global engine.

    Raises:
        ValueError: If confirm is not True
    """
    if not confirm:
        raise ValueError("Must pass confirm=True to reset database. This will delete all data!")

    logger.warning("RESETTING DATABASE - ALL GENEALOGY RECORDS WILL BE LOST")

    if engine is None:
        engine = get_engine()

    from .. import models  # noqa: F401

    Base.metadata.drop_all(engine)
    logger.info("All tables dropped")

    Base.metadata.create_all(engine)
    logger.info("Tables recreated")


def initialize_app_database() -> None:
    """
    Initialize the application database.

    Creates the database file and tables if they don't exist.
    """
    config = get_config()

    if not config.database_exists():
        logger.info(f"Creating new database at: {config.database_url}")
    else:
        logger.info(f"Using existing database at: {config.database_path}")

    engine = get_engine()
    init_database(engine)

    if verify_database():
        logger.info("Database initialized and verified successfully")
    else:
        logger.warning("Database verification failed - tables may not exist")
