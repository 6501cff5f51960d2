"""
Database connection management and initialization.

Supports both SQLite (local dev) and PostgreSQL (production) via
CHRONOSTORE_DATABASE_URL or DATABASE_URL.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from chronostore.core.config import get_settings

logger = logging.getLogger(__name__)

# Default application engine
_engine: Engine | None = None


def get_database_url() -> str:
    """Get database URL from settings/environment or default to SQLite.

    Handles the postgres:// URL form by converting to postgresql://.
    """
    settings = get_settings()
    database_url = settings.database_url or os.getenv("DATABASE_URL")

    if database_url:
        # SQLAlchemy requires postgresql://
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        return database_url

    return f"sqlite:///{get_db_path()}"


def get_db_path() -> Path:
    """Get the SQLite database file path (used when no URL is set)."""
    path = get_settings().sqlite_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def create_store_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine with the connect args each backend needs."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=echo, connect_args=connect_args)


def get_engine() -> Engine:
    """Get the default application engine."""
    global _engine
    if _engine is None:
        _engine = create_store_engine(get_database_url(), echo=get_settings().echo_sql)
    return _engine


def reset_engine() -> None:
    """Reset the engine (useful for testing or reconfiguration)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def _statements(schema: str) -> list[str]:
    """Split a schema script into individual statements."""
    statements = []
    current_stmt: list[str] = []
    for line in schema.split("\n"):
        stripped = line.strip()
        # Skip pure comment lines
        if stripped.startswith("--"):
            continue
        current_stmt.append(line)
        if stripped.endswith(";"):
            statements.append("\n".join(current_stmt))
            current_stmt = []

    result = []
    for statement in statements:
        statement = statement.strip().rstrip(";").strip()
        if statement:
            result.append(statement)
    return result


def init_db(engine: Engine | None = None) -> None:
    """Initialize database schema.

    Creates all tables if they don't exist. Safe to call multiple times.
    """
    engine = engine or get_engine()
    with engine.begin() as conn:
        for statement in _statements(_SCHEMA):
            conn.execute(text(statement))
    logger.info("Initialized chronostore schema on %s", engine.url.render_as_string(hide_password=True))


# =============================================================================
# Database Schema (SQLite, PostgreSQL-compatible design)
# =============================================================================

_SCHEMA = """
-- =============================================================================
-- VERSION RECORDS
-- =============================================================================
-- One row per version. Rows are never deleted; the only update ever issued
-- closes processing_thru. Timestamps are fixed-width ISO-8601 UTC strings so
-- text order equals time order. business_from/business_thru are NULL for
-- uni-temporal kinds.

CREATE TABLE IF NOT EXISTS version_records (
    id TEXT PRIMARY KEY,                -- UUID
    sequence_number INTEGER NOT NULL,   -- insertion order
    kind TEXT NOT NULL,                 -- entity kind, e.g. "Salary"
    entity_key TEXT NOT NULL,           -- JSON-encoded identity
    attributes TEXT NOT NULL,           -- JSON payload

    business_from TEXT,
    business_thru TEXT,
    processing_from TEXT NOT NULL,
    processing_thru TEXT NOT NULL,

    UNIQUE(sequence_number),
    UNIQUE(kind, entity_key, business_from, processing_from)
);

-- =============================================================================
-- IDENTITY SEQUENCES
-- =============================================================================

CREATE TABLE IF NOT EXISTS object_sequences (
    sequence_name TEXT PRIMARY KEY,
    next_value INTEGER NOT NULL
);

-- =============================================================================
-- INDEXES
-- =============================================================================

CREATE INDEX IF NOT EXISTS idx_version_records_entity ON version_records(kind, entity_key);
CREATE INDEX IF NOT EXISTS idx_version_records_current ON version_records(kind, processing_thru);
CREATE INDEX IF NOT EXISTS idx_version_records_business ON version_records(kind, business_from, business_thru);
"""

_TABLES = ("version_records", "object_sequences")


def reset_db(engine: Engine | None = None) -> None:
    """Drop all chronostore tables and recreate schema. USE WITH CAUTION."""
    engine = engine or get_engine()
    with engine.begin() as conn:
        for table in _TABLES:
            conn.execute(text(f"DROP TABLE IF EXISTS {table}"))

    init_db(engine)


def get_table_stats(engine: Engine | None = None) -> dict[str, int]:
    """Get row counts for chronostore tables (useful for diagnostics)."""
    engine = engine or get_engine()
    with engine.connect() as conn:
        stats = {}
        for table in _TABLES:
            result = conn.execute(text(f"SELECT COUNT(*) as count FROM {table}"))
            stats[table] = result.fetchone()[0]
        return stats
