"""
Chronostore: one handle wiring a store, allocator, clock and lock registry.

There is no global manager. Build a Chronostore once and pass it (or the
repositories it hands out) to whoever needs versioned data.

Usage:
    chronostore = Chronostore(InMemoryVersionStore(), allocator=InMemorySequenceGenerator())
    salaries = chronostore.register(EntityKind("Salary", Salary))
    salaries.insert({"employee_id": 1, "amount": 5_000_000}, effective_date="2024-01-01")
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

from chronostore.core.clock import Clock
from chronostore.core.config import Settings, get_settings
from chronostore.core.exceptions import ConfigurationError
from chronostore.identity.sequence import IdentityAllocator, SqlSequenceGenerator
from chronostore.repository.models import EntityKind
from chronostore.repository.temporal_repo import TemporalRepository
from chronostore.storage.base import VersionStore
from chronostore.storage.database import create_store_engine, get_database_url, init_db
from chronostore.storage.locks import LockRegistry
from chronostore.storage.sql_store import SqlVersionStore
from chronostore.temporal.mutation import MutationProtocol

logger = logging.getLogger(__name__)


class Chronostore:
    """Registry of entity kinds over one store."""

    def __init__(
        self,
        store: VersionStore,
        allocator: IdentityAllocator | None = None,
        clock: Clock | None = None,
        settings: Settings | None = None,
        locks: LockRegistry | None = None,
    ):
        self.settings = settings or get_settings()
        self.protocol = MutationProtocol(store, clock=clock, locks=locks, allocator=allocator)
        self._repositories: dict[str, TemporalRepository] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        engine: Engine | None = None,
        clock: Clock | None = None,
    ) -> Chronostore:
        """SQL-backed instance with SQL sequences, schema created if missing."""
        settings = settings or get_settings()
        if engine is None:
            url = settings.database_url or get_database_url()
            engine = create_store_engine(url, echo=settings.echo_sql)
        init_db(engine)
        return cls(
            SqlVersionStore(engine, settings),
            allocator=SqlSequenceGenerator(engine, settings),
            clock=clock,
            settings=settings,
        )

    @property
    def store(self) -> VersionStore:
        return self.protocol.store

    @property
    def clock(self) -> Clock:
        return self.protocol.clock

    # =========================================================================
    # Kinds
    # =========================================================================

    def register(self, kind: EntityKind) -> TemporalRepository:
        """Register an entity kind and return its repository.

        Registering the same kind twice returns the existing repository.

        Raises:
            ConfigurationError: a different kind is registered under the name
        """
        existing = self._repositories.get(kind.name)
        if existing is not None:
            if existing.kind != kind:
                raise ConfigurationError(
                    f"Entity kind {kind.name!r} is already registered with a different definition",
                    kind=kind.name,
                )
            return existing
        repository = TemporalRepository(kind, self.protocol)
        self._repositories[kind.name] = repository
        logger.debug("Registered entity kind %s (%s)", kind.name, kind.temporality.value)
        return repository

    def repository(self, kind: EntityKind | str) -> TemporalRepository:
        """Repository of a registered kind.

        Raises:
            ConfigurationError: the kind is not registered
        """
        name = kind if isinstance(kind, str) else kind.name
        try:
            return self._repositories[name]
        except KeyError:
            raise ConfigurationError(f"Unknown entity kind: {name}", kind=name) from None

    def kinds(self) -> list[EntityKind]:
        return [repository.kind for repository in self._repositories.values()]

    def __contains__(self, kind: EntityKind | str) -> bool:
        name = kind if isinstance(kind, str) else kind.name
        return name in self._repositories
