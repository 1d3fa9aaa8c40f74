"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from config import reload_settings
from db_engine import create_db_engine, init_db
from services.asset_directory import AssetDirectory
from services.transaction_engine import TransactionEngine


class StepClock:
    """Clock that advances one second per call, so every lot gets a distinct opened_at."""

    def __init__(self, start: datetime = datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(seconds=1)
        return value


@pytest.fixture(autouse=True)
def _fresh_settings():
    reload_settings()
    yield
    reload_settings()


@pytest.fixture
def engine():
    """In-memory SQLite store with the schema created."""
    eng = create_db_engine("sqlite://", echo=False)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite store, needed when several threads open connections."""
    eng = create_db_engine(f"sqlite:///{tmp_path / 'ledger.db'}", echo=False, busy_timeout_ms=30000)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def directory(engine) -> AssetDirectory:
    return AssetDirectory(engine)


@pytest.fixture
def aapl(directory):
    return directory.register("AAPL", "Apple Inc.", kind="EQUITY", sector="Technology")


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def ledger(engine, directory, clock) -> TransactionEngine:
    return TransactionEngine(engine, directory=directory, clock=clock)
