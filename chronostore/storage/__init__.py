"""Storage domain - version stores, database helpers, and identity locks."""

# Database
from chronostore.storage.database import (
    create_store_engine,
    get_database_url,
    get_db_path,
    get_engine,
    reset_engine,
    init_db,
    reset_db,
    get_table_stats,
)

# Stores
from chronostore.storage.base import VersionStore
from chronostore.storage.memory import InMemoryVersionStore
from chronostore.storage.sql_store import SqlVersionStore

# Locks
from chronostore.storage.locks import LockRegistry

__all__ = [
    # Database
    "create_store_engine",
    "get_database_url",
    "get_db_path",
    "get_engine",
    "reset_engine",
    "init_db",
    "reset_db",
    "get_table_stats",
    # Stores
    "VersionStore",
    "InMemoryVersionStore",
    "SqlVersionStore",
    # Locks
    "LockRegistry",
]
