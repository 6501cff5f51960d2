"""
SQL-backed version store.

Records live in the version_records table (see storage/database.py). Rows are
only ever inserted, and the only UPDATE issued closes processing_thru. Closing
is optimistic: the UPDATE matches the row only while it is still current, so
a writer that lost a race sees zero affected rows and gets an OverlapError
instead of silently forking the chain.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from chronostore.core.config import Settings, get_settings
from chronostore.core.exceptions import OverlapError, StorageError
from chronostore.storage.base import RecordFilter, VersionStore
from chronostore.storage.database import get_engine
from chronostore.temporal.interval import (
    INFINITY,
    Interval,
    TimeLike,
    format_bound,
    to_bound,
    to_instant,
)
from chronostore.temporal.record import (
    EntityId,
    VersionRecord,
    decode_identity,
    encode_identity,
)

logger = logging.getLogger(__name__)


class SqlVersionStore(VersionStore):
    """Version store on a SQLAlchemy engine (SQLite or PostgreSQL)."""

    def __init__(self, engine: Engine | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.engine = engine or get_engine()
        self._infinity = to_instant(self.settings.infinity)
        self._infinity_text = format_bound(INFINITY, self._infinity)
        self._local = threading.local()

    # =========================================================================
    # Connections
    # =========================================================================

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if getattr(self._local, "conn", None) is not None:
            yield
            return

        with self._errors("committing transaction"):
            with self.engine.begin() as conn:
                self._local.conn = conn
                try:
                    yield
                finally:
                    self._local.conn = None

    @contextmanager
    def _connection(self, write: bool = False) -> Iterator[Connection]:
        """The thread's transaction connection, or a short-lived one."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            yield conn
        elif write:
            with self.engine.begin() as conn:
                yield conn
        else:
            with self.engine.connect() as conn:
                yield conn

    @contextmanager
    def _errors(self, action: str, **context: Any) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            raise StorageError(f"Integrity violation while {action}: {exc.orig}", **context) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Database error while {action}: {exc}", **context) from exc

    # =========================================================================
    # Writes
    # =========================================================================

    def append(self, record: VersionRecord) -> VersionRecord:
        try:
            attributes = json.dumps(dict(record.attributes), sort_keys=True)
        except TypeError as exc:
            raise StorageError(
                f"Attributes of {record} are not JSON serializable",
                kind=record.kind,
                entity_id=record.entity_id,
            ) from exc

        params = {
            "id": str(uuid.uuid4()),
            "kind": record.kind,
            "entity_key": encode_identity(record.entity_id),
            "attributes": attributes,
            "business_from": None,
            "business_thru": None,
            "processing_from": self._format(record.processing.start),
            "processing_thru": self._format(record.processing.thru),
        }
        if record.business is not None:
            params["business_from"] = self._format(record.business.start)
            params["business_thru"] = self._format(record.business.thru)

        with self._errors("appending record", kind=record.kind, entity_id=record.entity_id):
            with self._connection(write=True) as conn:
                # MAX+1 inside the INSERT so the sequence is taken under the write lock
                conn.execute(
                    text("""
                    INSERT INTO version_records (
                        id, sequence_number, kind, entity_key, attributes,
                        business_from, business_thru, processing_from, processing_thru
                    ) VALUES (
                        :id,
                        (SELECT COALESCE(MAX(sequence_number), 0) + 1 FROM version_records),
                        :kind, :entity_key, :attributes,
                        :business_from, :business_thru, :processing_from, :processing_thru
                    )
                    """),
                    params,
                )
        logger.debug("Appended %s", record)
        return record

    def close(self, record: VersionRecord, processing_thru: TimeLike) -> VersionRecord:
        closed = record.closed(processing_thru)
        key = {
            "kind": record.kind,
            "entity_key": encode_identity(record.entity_id),
            "processing_from": self._format(record.processing.start),
        }
        if record.business is not None:
            business_clause = "business_from = :business_from"
            key["business_from"] = self._format(record.business.start)
        else:
            business_clause = "business_from IS NULL"

        with self._errors("closing record", kind=record.kind, entity_id=record.entity_id):
            with self._connection(write=True) as conn:
                result = conn.execute(
                    text(f"""
                    UPDATE version_records
                    SET processing_thru = :processing_thru
                    WHERE kind = :kind
                      AND entity_key = :entity_key
                      AND processing_from = :processing_from
                      AND {business_clause}
                      AND processing_thru = :infinity
                    """),
                    {
                        **key,
                        "processing_thru": self._format(closed.processing.thru),
                        "infinity": self._infinity_text,
                    },
                )
                if result.rowcount == 1:
                    return closed

                exists = conn.execute(
                    text(f"""
                    SELECT COUNT(*) FROM version_records
                    WHERE kind = :kind
                      AND entity_key = :entity_key
                      AND processing_from = :processing_from
                      AND {business_clause}
                    """),
                    key,
                ).scalar()

        if exists:
            raise OverlapError(
                f"{record} was already superseded by another writer",
                kind=record.kind,
                entity_id=record.entity_id,
            )
        raise StorageError(
            f"No stored record with key {record.key}",
            kind=record.kind,
            entity_id=record.entity_id,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def scan(self, kind: str, entity_id: EntityId) -> list[VersionRecord]:
        with self._errors("scanning records", kind=kind, entity_id=entity_id):
            with self._connection() as conn:
                result = conn.execute(
                    text("""
                    SELECT * FROM version_records
                    WHERE kind = :kind AND entity_key = :entity_key
                    ORDER BY sequence_number
                    """),
                    {"kind": kind, "entity_key": encode_identity(entity_id)},
                )
                rows = result.fetchall()
        return [self._from_row(row._mapping) for row in rows]

    def scan_all(self, kind: str, predicate: RecordFilter | None = None) -> list[VersionRecord]:
        with self._errors("scanning records", kind=kind):
            with self._connection() as conn:
                result = conn.execute(
                    text("""
                    SELECT * FROM version_records
                    WHERE kind = :kind
                    ORDER BY sequence_number
                    """),
                    {"kind": kind},
                )
                rows = result.fetchall()
        records = [self._from_row(row._mapping) for row in rows]
        if predicate is not None:
            records = [record for record in records if predicate(record)]
        return records

    def entity_ids(self, kind: str) -> list[EntityId]:
        with self._errors("listing identities", kind=kind):
            with self._connection() as conn:
                result = conn.execute(
                    text("""
                    SELECT entity_key FROM version_records
                    WHERE kind = :kind
                    GROUP BY entity_key
                    ORDER BY MIN(sequence_number)
                    """),
                    {"kind": kind},
                )
                rows = result.fetchall()
        return [decode_identity(row[0]) for row in rows]

    # =========================================================================
    # Row mapping
    # =========================================================================

    def _format(self, bound) -> str:
        return format_bound(bound, self._infinity)

    def _from_row(self, row: Mapping[str, Any]) -> VersionRecord:
        business = None
        if row["business_from"] is not None:
            business = Interval(
                to_instant(row["business_from"]),
                to_bound(row["business_thru"], self._infinity),
            )
        return VersionRecord(
            kind=row["kind"],
            entity_id=decode_identity(row["entity_key"]),
            attributes=json.loads(row["attributes"]),
            processing=Interval(
                to_instant(row["processing_from"]),
                to_bound(row["processing_thru"], self._infinity),
            ),
            business=business,
        )
