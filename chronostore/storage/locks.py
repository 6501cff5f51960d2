"""Per-identity locks serializing mutations of one version chain."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from chronostore.temporal.record import EntityId, normalize_identity


class LockRegistry:
    """Lazily created reentrant lock per (kind, entity_id).

    Mutations of distinct identities proceed in parallel; mutations of the same
    identity are serialized. Locks are reentrant so a service may hold an
    identity across several repository calls.
    """

    def __init__(self):
        self._locks: dict[tuple[str, EntityId], threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def get(self, kind: str, entity_id: EntityId) -> threading.RLock:
        key = (kind, normalize_identity(entity_id))
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, kind: str, entity_id: EntityId) -> Iterator[None]:
        with self.get(kind, entity_id):
            yield

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)
