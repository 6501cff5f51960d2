"""Pytest fixtures for test suite."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine

from chronostore.core.clock import ManualClock
from chronostore.core.config import Settings
from chronostore.identity.sequence import InMemorySequenceGenerator
from chronostore.repository import Chronostore
from chronostore.storage.base import VersionStore
from chronostore.storage.database import create_store_engine, init_db
from chronostore.storage.memory import InMemoryVersionStore
from chronostore.storage.sql_store import SqlVersionStore
from chronostore.temporal.mutation import MutationProtocol

# Processing time starts here; business dates in tests are mostly in 2024.
PROCESSING_START = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(data_dir=str(tmp_path), _env_file=None)


@pytest.fixture
def clock() -> ManualClock:
    """Processing clock that moves one second forward on every reading."""
    return ManualClock(PROCESSING_START, step=timedelta(seconds=1))


@pytest.fixture
def frozen_clock() -> ManualClock:
    """Processing clock that only moves when advanced explicitly."""
    return ManualClock(PROCESSING_START)


@pytest.fixture
def allocator() -> InMemorySequenceGenerator:
    return InMemorySequenceGenerator()


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def temp_database():
    """Use a temporary SQLite database file for each test."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        temp_path = Path(f.name)

    yield temp_path

    # Cleanup
    try:
        temp_path.unlink()
    except OSError:
        pass


@pytest.fixture
def sql_engine(temp_database: Path) -> Engine:
    """Engine on the temporary database with the schema created."""
    engine = create_store_engine(f"sqlite:///{temp_database}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def memory_store() -> InMemoryVersionStore:
    return InMemoryVersionStore()


@pytest.fixture
def sql_store(sql_engine: Engine, settings: Settings) -> SqlVersionStore:
    return SqlVersionStore(sql_engine, settings)


@pytest.fixture(params=["memory", "sql"])
def store(request) -> VersionStore:
    """Parametrized fixture running a test against both storage backends."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def protocol(store: VersionStore, clock: ManualClock, allocator) -> MutationProtocol:
    return MutationProtocol(store, clock=clock, allocator=allocator)


@pytest.fixture
def chronostore(store: VersionStore, clock: ManualClock, allocator, settings) -> Chronostore:
    return Chronostore(store, allocator=allocator, clock=clock, settings=settings)
