"""
Tests for the storage collaborators and database helpers.
"""

import threading
from datetime import datetime, timezone

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from chronostore.core.exceptions import OverlapError, StorageError
from chronostore.storage.database import (
    create_store_engine,
    get_database_url,
    get_db_path,
    get_engine,
    get_table_stats,
    init_db,
    reset_db,
    reset_engine,
)
from chronostore.storage.locks import LockRegistry
from chronostore.storage.memory import InMemoryVersionStore
from chronostore.storage.sql_store import SqlVersionStore
from chronostore.temporal.interval import INFINITY, Interval
from chronostore.temporal.record import VersionRecord


def at(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def record(entity_id=1, amount=100, business_start=at(2024, 1, 1), processing_start=at(2025, 1, 1)):
    return VersionRecord(
        "Salary",
        entity_id,
        {"amount": amount},
        Interval.open(processing_start),
        Interval.open(business_start),
    )


class TestVersionStoreContract:
    """Behavior shared by every backend."""

    def test_append_and_scan(self, store):
        store.append(record(1))
        store.append(record(2))
        store.append(record(1, 200, at(2024, 7, 1), at(2025, 2, 1)))

        assert [r.attributes["amount"] for r in store.scan("Salary", 1)] == [100, 200]
        assert store.scan("Salary", 3) == []
        assert store.scan("Other", 1) == []

    def test_scan_round_trips_intervals(self, store):
        store.append(record(1))

        loaded = store.scan("Salary", 1)[0]

        assert loaded == record(1)
        assert loaded.processing.thru is INFINITY
        assert loaded.business.start == at(2024, 1, 1)

    def test_entity_ids_in_insertion_order(self, store):
        for entity_id in (3, 1, 2):
            store.append(record(entity_id))
        store.append(record(3, 200, at(2024, 7, 1), at(2025, 2, 1)))

        assert store.entity_ids("Salary") == [3, 1, 2]

    def test_chains_grouped_in_insertion_order(self, store):
        store.append(record(2))
        store.append(record(1))
        store.append(record(2, 200, at(2024, 7, 1), at(2025, 2, 1)))

        chains = store.chains("Salary")

        assert [chain.entity_id for chain in chains] == [2, 1]
        assert len(chains[0]) == 2

    def test_scan_all_with_filter(self, store):
        store.append(record(1, 100))
        store.append(record(2, 300))

        found = store.scan_all("Salary", lambda r: r.attributes["amount"] > 200)

        assert [r.entity_id for r in found] == [2]

    def test_duplicate_key_rejected(self, store):
        store.append(record(1))

        with pytest.raises(StorageError):
            store.append(record(1, 999))

    def test_close(self, store):
        store.append(record(1))

        closed = store.close(record(1), at(2025, 3, 1))

        assert closed.processing == Interval(at(2025, 1, 1), at(2025, 3, 1))
        assert store.scan("Salary", 1)[0].processing.thru == at(2025, 3, 1)

    def test_close_is_optimistic(self, store):
        """A second close of the same record means another writer got there first."""
        store.append(record(1))
        store.close(record(1), at(2025, 3, 1))

        with pytest.raises(OverlapError):
            store.close(record(1), at(2025, 4, 1))

    def test_close_missing_record(self, store):
        with pytest.raises(StorageError):
            store.close(record(404), at(2025, 3, 1))

    def test_uni_temporal_records(self, store):
        company = VersionRecord("Company", 1, {"name": "Acme"}, Interval.open(at(2025, 1, 1)))
        store.append(company)

        store.close(company, at(2025, 2, 1))

        loaded = store.scan("Company", 1)[0]
        assert loaded.business is None
        assert loaded.processing.thru == at(2025, 2, 1)

    def test_transaction_rolls_back(self, store):
        store.append(record(1))

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.close(record(1), at(2025, 3, 1))
                store.append(record(1, 200, at(2024, 1, 1), at(2025, 3, 1)))
                store.append(record(2))
                raise RuntimeError("abort")

        assert store.scan("Salary", 1) == [record(1)]
        assert store.entity_ids("Salary") == [1]

    def test_transaction_reads_its_own_writes(self, store):
        with store.transaction():
            store.append(record(1))
            assert len(store.scan("Salary", 1)) == 1

        assert len(store.scan("Salary", 1)) == 1

    def test_uncommitted_writes_invisible_to_other_threads(self, store):
        store.append(record(1))
        seen = {}

        def reader():
            seen["scan"] = store.scan("Salary", 1)
            seen["ids"] = store.entity_ids("Salary")

        with store.transaction():
            store.close(record(1), at(2025, 3, 1))
            store.append(record(1, 200, at(2024, 1, 1), at(2025, 3, 1)))
            store.append(record(2))
            thread = threading.Thread(target=reader)
            thread.start()
            thread.join()
            assert len(store.scan("Salary", 1)) == 2

        assert seen["scan"] == [record(1)]
        assert seen["ids"] == [1]
        assert len(store.scan("Salary", 1)) == 2
        assert store.entity_ids("Salary") == [1, 2]

    def test_nested_transaction_joins_outer(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    store.append(record(1))
                raise RuntimeError("abort outer")

        assert store.scan("Salary", 1) == []


class TestInMemoryVersionStore:
    """In-memory specifics."""

    def test_rollback_keeps_other_threads_writes(self):
        store = InMemoryVersionStore()
        inside = threading.Event()
        written = threading.Event()

        def other_writer():
            inside.wait()
            store.append(record(2))
            written.set()

        thread = threading.Thread(target=other_writer)
        thread.start()

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.append(record(1))
                inside.set()
                written.wait()
                raise RuntimeError("abort")
        thread.join()

        assert store.entity_ids("Salary") == [2]

    def test_conflicting_commit_publishes_nothing(self):
        """A record closed by another writer mid-transaction fails the commit."""
        store = InMemoryVersionStore()
        store.append(record(1))

        with pytest.raises(OverlapError):
            with store.transaction():
                store.close(record(1), at(2025, 3, 1))
                store.append(record(1, 200, at(2024, 1, 1), at(2025, 3, 1)))
                thread = threading.Thread(target=store.close, args=(record(1), at(2025, 2, 1)))
                thread.start()
                thread.join()

        records = store.scan("Salary", 1)
        assert len(records) == 1
        assert records[0].processing.thru == at(2025, 2, 1)

    def test_clear(self):
        store = InMemoryVersionStore()
        store.append(record(1))

        store.clear()

        assert store.kinds() == []


class TestSqlVersionStore:
    """SQL specifics."""

    def test_infinity_stored_as_sentinel_instant(self, sql_store, sql_engine):
        sql_store.append(record(1))

        with sql_engine.connect() as conn:
            row = conn.execute(text("SELECT * FROM version_records")).fetchone()._mapping

        assert row["processing_thru"] == "9999-12-01T23:59:00.000000+00:00"
        assert row["business_thru"] == "9999-12-01T23:59:00.000000+00:00"
        assert row["entity_key"] == "1"
        assert row["sequence_number"] == 1

    def test_composite_identity_round_trip(self, sql_store):
        sql_store.append(record(("ACME", 7)))

        assert sql_store.entity_ids("Salary") == [("ACME", 7)]
        assert sql_store.scan("Salary", ("ACME", 7))[0].entity_id == ("ACME", 7)

    def test_database_errors_are_wrapped(self, temp_database, settings):
        engine = create_store_engine(f"sqlite:///{temp_database}")  # no schema
        store = SqlVersionStore(engine, settings)

        with pytest.raises(StorageError) as exc_info:
            store.scan("Salary", 1)

        assert isinstance(exc_info.value.__cause__, SQLAlchemyError)
        engine.dispose()

    def test_unserializable_attributes(self, sql_store):
        bad = VersionRecord("Salary", 1, {"amount": object()}, Interval.open(at(2025, 1, 1)))

        with pytest.raises(StorageError):
            sql_store.append(bad)


class TestDatabaseHelpers:
    """Test schema management helpers."""

    def test_init_db_is_idempotent(self, sql_engine):
        init_db(sql_engine)

        assert get_table_stats(sql_engine) == {"version_records": 0, "object_sequences": 0}

    def test_table_stats_and_reset(self, sql_engine, sql_store):
        sql_store.append(record(1))
        assert get_table_stats(sql_engine)["version_records"] == 1

        reset_db(sql_engine)

        assert get_table_stats(sql_engine)["version_records"] == 0

    def test_postgres_url_rewritten(self, monkeypatch):
        from chronostore.core.config import get_settings

        monkeypatch.setenv("CHRONOSTORE_DATABASE_URL", "postgres://user:pw@localhost/chrono")
        get_settings.cache_clear()
        try:
            assert get_database_url() == "postgresql://user:pw@localhost/chrono"
        finally:
            get_settings.cache_clear()

    def test_default_engine_uses_sqlite_in_data_dir(self, monkeypatch, tmp_path):
        from chronostore.core.config import get_settings

        monkeypatch.delenv("CHRONOSTORE_DATABASE_URL", raising=False)
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setenv("CHRONOSTORE_DATA_DIR", str(tmp_path / "data"))
        get_settings.cache_clear()
        reset_engine()
        try:
            engine = get_engine()

            assert get_engine() is engine
            assert get_db_path() == tmp_path / "data" / "chronostore.db"
            assert engine.url.database == str(get_db_path())

            reset_engine()
            assert get_engine() is not engine
        finally:
            reset_engine()
            get_settings.cache_clear()


class TestLockRegistry:
    """Test per-identity locks."""

    def test_same_identity_same_lock(self):
        locks = LockRegistry()

        assert locks.get("Salary", 1) is locks.get("Salary", 1)
        assert locks.get("Salary", [1, 2]) is locks.get("Salary", (1, 2))
        assert locks.get("Salary", 1) is not locks.get("Salary", 2)
        assert locks.get("Salary", 1) is not locks.get("Company", 1)
        assert len(locks) == 4

    def test_hold_is_reentrant(self):
        locks = LockRegistry()

        with locks.hold("Salary", 1):
            with locks.hold("Salary", 1):
                pass
