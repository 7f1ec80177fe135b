"""
Database connection management and initialization.

Supports both SQLite (local dev) and PostgreSQL (production) via DATABASE_URL.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from mizan.config import get_settings


# Global engine instance
_engine: Engine | None = None
_DB_PATH: Path | None = None


def get_database_url() -> str:
    """Get database URL from settings (DATABASE_URL) or default to SQLite.

    Converts the ``postgres://`` scheme used by some hosts to ``postgresql://``.
    """
    database_url = get_settings().database_url

    if database_url:
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        return database_url

    return f"sqlite:///{get_db_path()}"


def get_db_path() -> Path:
    """Get the SQLite database file path (used when DATABASE_URL not set)."""
    global _DB_PATH
    if _DB_PATH is None:
        # storage/database.py -> mizan/ -> project_root/
        project_root = Path(__file__).parent.parent.parent
        data_dir = project_root / "data"
        data_dir.mkdir(exist_ok=True)
        _DB_PATH = data_dir / "mizan.db"
    return _DB_PATH


def set_db_path(path: Path | str) -> None:
    """Set a custom database path (useful for testing)."""
    global _DB_PATH, _engine
    _DB_PATH = Path(path)
    _engine = None  # Reset engine when path changes


def get_engine() -> Engine:
    """Get SQLAlchemy engine for database operations."""
    global _engine
    if _engine is None:
        database_url = get_database_url()

        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        _engine = create_engine(database_url, echo=False, connect_args=connect_args)
    return _engine


def reset_engine() -> None:
    """Reset the engine (useful for testing or reconfiguration)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


@contextmanager
def get_db() -> Generator[Connection, None, None]:
    """Get a database connection inside a transaction.

    The transaction commits when the block exits normally and rolls back
    on error.

    Usage:
        with get_db() as conn:
            rows = conn.execute(text("SELECT * FROM rules")).fetchall()
    """
    with get_engine().begin() as conn:
        yield conn


def init_db() -> None:
    """Initialize database schema.

    Creates all tables if they don't exist. Safe to call multiple times.
    """
    with get_db() as conn:
        for statement in _SCHEMA.split(";"):
            if statement.strip():
                conn.execute(text(statement))


def reset_db() -> None:
    """Drop all tables and recreate schema. USE WITH CAUTION."""
    with get_db() as conn:
        for table in _TABLES:
            conn.execute(text(f"DROP TABLE IF EXISTS {table}"))
    init_db()


def get_table_stats() -> dict[str, int]:
    """Get row counts for all tables (useful for diagnostics)."""
    with get_db() as conn:
        return {
            table: conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()
            for table in _TABLES
        }


# =============================================================================
# Database Schema (SQLite, PostgreSQL-compatible design)
# =============================================================================

_TABLES = ("rules", "decisions")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS rules (
    id VARCHAR(64) PRIMARY KEY,
    position INTEGER NOT NULL,
    name TEXT NOT NULL,
    condition TEXT NOT NULL,
    action VARCHAR(16) NOT NULL,
    reason TEXT NOT NULL DEFAULT '',
    priority INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS decisions (
    id VARCHAR(64) PRIMARY KEY,
    sequence_number INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    facts_json TEXT NOT NULL,
    decision VARCHAR(16) NOT NULL,
    matched_rule_id VARCHAR(64),
    rule_name TEXT NOT NULL,
    reason TEXT NOT NULL,
    trace_json TEXT NOT NULL DEFAULT '[]'
);

CREATE INDEX IF NOT EXISTS idx_rules_position ON rules(position);
CREATE INDEX IF NOT EXISTS idx_decisions_sequence ON decisions(sequence_number)
"""
