"""
Identity allocation.

Sequences are named per entity kind. Allocated values are never handed out
twice, even across a rolled-back insert; gaps are expected.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from chronostore.core.config import Settings, get_settings
from chronostore.core.exceptions import StorageError
from chronostore.storage.database import get_engine

logger = logging.getLogger(__name__)


class IdentityAllocator(ABC):
    """Hands out unique integer identities per sequence name."""

    @abstractmethod
    def next_ids(self, sequence_name: str, count: int) -> list[int]:
        """Reserve count consecutive identities.

        Raises:
            ValueError: if count is not positive
        """

    @abstractmethod
    def reset(self, sequence_name: str, value: int) -> None:
        """Make value the next identity handed out for sequence_name."""

    def next_id(self, sequence_name: str) -> int:
        return self.next_ids(sequence_name, 1)[0]


def _check_count(count: int) -> None:
    if count <= 0:
        raise ValueError(f"count must be positive, got {count}")


class InMemorySequenceGenerator(IdentityAllocator):
    """Thread-safe in-process counters.

    Args:
        start: First value of a sequence that has not been used yet
        increment: Distance between consecutive values
    """

    def __init__(self, start: int = 1000, increment: int = 1):
        if increment < 1:
            raise ValueError(f"increment must be positive, got {increment}")
        self.start = start
        self.increment = increment
        self._next: dict[str, int] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> InMemorySequenceGenerator:
        settings = settings or get_settings()
        return cls(start=settings.sequence_start, increment=settings.sequence_increment)

    def next_ids(self, sequence_name: str, count: int) -> list[int]:
        _check_count(count)
        with self._lock:
            first = self._next.get(sequence_name, self.start)
            self._next[sequence_name] = first + count * self.increment
        return [first + i * self.increment for i in range(count)]

    def reset(self, sequence_name: str, value: int) -> None:
        with self._lock:
            self._next[sequence_name] = value

    def clear_all(self) -> None:
        """Forget every sequence. Useful for testing."""
        with self._lock:
            self._next.clear()


class SqlSequenceGenerator(IdentityAllocator):
    """Counters kept in the object_sequences table.

    Each reservation runs in its own short transaction, independent of any
    store transaction, so a rollback never releases identities for reuse.
    """

    def __init__(self, engine: Engine | None = None, settings: Settings | None = None):
        settings = settings or get_settings()
        self.engine = engine or get_engine()
        self.start = settings.sequence_start
        self.increment = settings.sequence_increment

    def next_ids(self, sequence_name: str, count: int) -> list[int]:
        _check_count(count)
        step = count * self.increment
        try:
            with self.engine.begin() as conn:
                # UPDATE first so the row is write-locked before it is read
                result = conn.execute(
                    text("""
                    UPDATE object_sequences
                    SET next_value = next_value + :step
                    WHERE sequence_name = :name
                    """),
                    {"step": step, "name": sequence_name},
                )
                if result.rowcount == 0:
                    conn.execute(
                        text("""
                        INSERT INTO object_sequences (sequence_name, next_value)
                        VALUES (:name, :next_value)
                        """),
                        {"name": sequence_name, "next_value": self.start + step},
                    )
                first = self._current(conn, sequence_name) - step
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Could not allocate identities from sequence {sequence_name}",
                sequence_name=sequence_name,
            ) from exc

        logger.debug("Allocated %d id(s) from %s starting at %d", count, sequence_name, first)
        return [first + i * self.increment for i in range(count)]

    def reset(self, sequence_name: str, value: int) -> None:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    text("UPDATE object_sequences SET next_value = :value WHERE sequence_name = :name"),
                    {"value": value, "name": sequence_name},
                )
                if result.rowcount == 0:
                    conn.execute(
                        text("""
                        INSERT INTO object_sequences (sequence_name, next_value)
                        VALUES (:name, :value)
                        """),
                        {"name": sequence_name, "value": value},
                    )
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Could not reset sequence {sequence_name}",
                sequence_name=sequence_name,
            ) from exc

    @staticmethod
    def _current(conn: Connection, sequence_name: str) -> int:
        result = conn.execute(
            text("SELECT next_value FROM object_sequences WHERE sequence_name = :name"),
            {"name": sequence_name},
        )
        return result.fetchone()[0]
