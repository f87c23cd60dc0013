"""
Database connection and session management for the inventory tracker.

This module provides:
- Database engine creation and configuration
- Session factory for database operations
- Transactional session scope (one atomic unit per build)
- Database initialization (create tables)
- SQLite foreign key enforcement
"""

from typing import Optional
from contextlib import contextmanager
import logging

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from ..utils.config import get_config
from ..models.base import Base

logger = logging.getLogger(__name__)

# Global engine and session factory
_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Foreign keys on and WAL journaling for each new SQLite connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def _disable_pysqlite_begin(dbapi_connection, connection_record):
    """Stop pysqlite from deferring BEGIN until the first write."""
    dbapi_connection.isolation_level = None


def _begin_immediate(conn):
    """Take SQLite's write lock when a unit of work starts.

    A build's availability check and its balance decrements then run under
    one lock, and concurrent builds over the same stock are serialized.
    """
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_database_engine(database_url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Create and configure the database engine.

    Args:
        database_url: Optional database URL. If None, uses config default.
        echo: If True, log all SQL statements. If None, uses config.

    Returns:
        Configured SQLAlchemy Engine
    """
    config = get_config()
    if database_url is None:
        database_url = config.database_url
        config.ensure_directories()
    if echo is None:
        echo = config.echo_sql

    logger.info(f"Creating database engine: {database_url}")

    if not database_url.startswith("sqlite"):
        # Server databases (PostgreSQL) get row locks and pooled connections
        return create_engine(database_url, echo=echo, pool_pre_ping=True)

    if ":memory:" in database_url or "mode=memory" in database_url or database_url == "sqlite://":
        # For in-memory databases (testing), use StaticPool
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
        event.listen(engine, "connect", _disable_pysqlite_begin)
        event.listen(engine, "begin", _begin_immediate)

    event.listen(engine, "connect", _set_sqlite_pragma)
    return engine


def init_database(engine: Optional[Engine] = None) -> None:
    """Create the ledger schema on the given (or global) engine. Idempotent."""
    if engine is None:
        engine = get_engine()

    logger.info("Initializing database tables")

    # Import all models so they're registered with Base
    from .. import models  # noqa: F401

    Base.metadata.create_all(engine)

    logger.info("Database tables initialized successfully")


def get_engine(force_recreate: bool = False) -> Engine:
    """Process-wide engine, created from config on first use."""
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()

    return _engine


def get_session_factory() -> sessionmaker:
    """Global sessionmaker; objects stay readable after commit."""
    global _SessionFactory

    if _SessionFactory is None:
        engine = get_engine()
        _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)

    return _SessionFactory


def get_session() -> Session:
    """Open a new session from the global factory."""
    session_factory = get_session_factory()
    return session_factory()


@contextmanager
def session_scope():
    """One atomic unit of work: commit on success, roll back and re-raise on error.

    Every write transaction runs inside exactly one scope, so its lines
    and balance updates land together or not at all.
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


def verify_database() -> bool:
    """
    Verify that the database is accessible and has tables.

    Returns:
        True if the ledger tables exist, False otherwise
    """
    try:
        inspector = inspect(get_engine())
        tables = inspector.get_table_names()
    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        return False

    expected_tables = ["transactions", "transaction_lines", "inventory_balances"]
    return all(table in tables for table in expected_tables)


def close_connections() -> None:
    """Dispose the engine and forget the session factory (server shutdown)."""
    global _engine, _SessionFactory

    _SessionFactory = None

    if _engine is not None:
        _engine.dispose()
        _engine = None

    logger.info("Database connections closed")


def initialize_app_database() -> None:
    """
    Initialize the application database.

    Creates tables if they don't exist and verifies the schema.
    """
    config = get_config()
    logger.info(f"Using database at: {config.database_url}")

    init_database(get_engine())

    if verify_database():
        logger.info("Database initialized and verified successfully")
    else:
        logger.warning("Database verification failed - tables may not exist")
