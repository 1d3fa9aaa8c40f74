"""
Database engine and session management for LotLedger.
Uses SQLModel on top of SQLAlchemy. Engines are created explicitly and passed
to the services that need them; nothing here holds a process-wide engine.
SQLite connections run in WAL mode, and write units of work take the database
write lock up front with BEGIN IMMEDIATE.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from config import get_settings
from errors import LedgerError, StoreUnavailable

logger = logging.getLogger(__name__)

# Execution option marking a connection as owned by a write unit of work
WRITE_OPTION = "ledger_write"


def create_db_engine(
    database_url: Optional[str] = None,
    echo: Optional[bool] = None,
    busy_timeout_ms: Optional[int] = None,
) -> Engine:
    """
    Create a database engine for the ledger store.

    Args:
        database_url: SQLAlchemy URL (default: from settings)
        echo: Echo SQL statements (default: from settings)
        busy_timeout_ms: SQLite lock wait in milliseconds (default: from settings)

    Returns:
        Configured SQLAlchemy Engine
    """
    settings = get_settings()
    url = database_url or settings.database_url
    echo = settings.db_echo if echo is None else echo
    busy_timeout_ms = settings.db_busy_timeout_ms if busy_timeout_ms is None else busy_timeout_ms

    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    kwargs = {
        "echo": echo,
        "connect_args": {"check_same_thread": False},  # Allow use across threads
    }
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every session sees an empty database
        kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)
    _install_sqlite_hooks(engine, busy_timeout_ms)
    return engine


def _install_sqlite_hooks(engine: Engine, busy_timeout_ms: int) -> None:
    """Take over SQLite transaction control and enable WAL mode."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # pysqlite must not emit BEGIN by itself; _on_begin does it
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def init_db(engine: Engine) -> None:
    """Initialize the database and create all tables."""
    from models import Instrument, Lot, TransactionRecord, PriceSnapshot  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database initialized")


@contextmanager
def unit_of_work(engine: Engine) -> Iterator[Session]:
    """
    Open an atomic, isolated write transaction.

    The session commits when the block exits normally and rolls back on every
    other exit path. Storage failures are raised as StoreUnavailable; ledger
    errors raised inside the block propagate unchanged after the rollback.

    Args:
        engine: Engine of the ledger store

    Yields:
        Session bound to the open transaction
    """
    session = Session(engine, expire_on_commit=False)
    try:
        session.connection(execution_options={WRITE_OPTION: True})
        yield session
        session.commit()
    except LedgerError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Unit of work rolled back after store failure: {e}")
        raise StoreUnavailable(f"Ledger store failure: {e.__class__.__name__}") from e
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def read_session(engine: Engine) -> Iterator[Session]:
    """
    Open a read-only session for reporting queries.

    Yields:
        Session that is closed (never committed) on exit
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
    except SQLAlchemyError as e:
        logger.error(f"Read failed: {e}")
        raise StoreUnavailable(f"Ledger store failure: {e.__class__.__name__}") from e
    finally:
        session.close()
