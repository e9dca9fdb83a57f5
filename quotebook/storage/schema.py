"""Relational schema for the remote store.

Handles:
- Table allowlist (ALLOWED_TABLES, validate_table_name)
- DDL for the supported dialects (sqlite, postgresql)
- Column migrations for databases created by older releases
- Default categories and the sentinel category
- Identity sequence sync after imports that supply explicit ids
"""

import logging
from typing import Dict, List

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection

from quotebook.types import DEFAULT_CATEGORIES, SENTINEL_CATEGORY

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 3  # v3: confidence + last_accessed_at

SUPPORTED_DIALECTS = frozenset({"sqlite", "postgresql"})

ALLOWED_TABLES = frozenset({"quotes", "categories"})


def validate_table_name(table: str) -> str:
    """Validate a table name against the allowlist.

    Raises:
        ValueError: If the table is not known.
    """
    if table not in ALLOWED_TABLES:
        raise ValueError(f"Invalid table name: {table}")
    return table


_SCHEMA: Dict[str, List[str]] = {
    "sqlite": [
        """
        CREATE TABLE IF NOT EXISTS categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS quotes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL DEFAULT '',
            content TEXT NOT NULL,
            author TEXT NOT NULL DEFAULT '',
            comment TEXT NOT NULL DEFAULT '',
            category TEXT NOT NULL DEFAULT '未分类',
            is_pinned INTEGER NOT NULL DEFAULT 0,
            confidence REAL NOT NULL DEFAULT 0.7,
            last_accessed_at TEXT,
            created_at TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_quotes_category ON quotes(category)",
    ],
    "postgresql": [
        """
        CREATE TABLE IF NOT EXISTS categories (
            id BIGINT GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
            name TEXT NOT NULL UNIQUE
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS quotes (
            id BIGINT GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY,
            title TEXT NOT NULL DEFAULT '',
            content TEXT NOT NULL,
            author TEXT NOT NULL DEFAULT '',
            comment TEXT NOT NULL DEFAULT '',
            category TEXT NOT NULL DEFAULT '未分类',
            is_pinned BOOLEAN NOT NULL DEFAULT FALSE,
            confidence DOUBLE PRECISION NOT NULL DEFAULT 0.7,
            last_accessed_at TEXT,
            created_at TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_quotes_category ON quotes(category)",
    ],
}

# Columns added after the first release, with their per-dialect definitions.
_QUOTE_MIGRATIONS: Dict[str, Dict[str, str]] = {
    "title": {"sqlite": "TEXT DEFAULT ''", "postgresql": "TEXT DEFAULT ''"},
    "author": {"sqlite": "TEXT DEFAULT ''", "postgresql": "TEXT DEFAULT ''"},
    "comment": {"sqlite": "TEXT DEFAULT ''", "postgresql": "TEXT DEFAULT ''"},
    "is_pinned": {"sqlite": "INTEGER DEFAULT 0", "postgresql": "BOOLEAN DEFAULT FALSE"},
    "confidence": {"sqlite": "REAL DEFAULT 0.7", "postgresql": "DOUBLE PRECISION DEFAULT 0.7"},
    "last_accessed_at": {"sqlite": "TEXT", "postgresql": "TEXT"},
}


def init_schema(conn: Connection) -> None:
    """Create tables, migrate old ones, and seed categories.

    Idempotent; safe to run on every start.
    """
    dialect = conn.dialect.name
    if dialect not in SUPPORTED_DIALECTS:
        raise ValueError(f"Unsupported database dialect: {dialect}")

    for statement in _SCHEMA[dialect]:
        conn.execute(text(statement))

    migrate_schema(conn)
    seed_categories(conn)


def migrate_schema(conn: Connection) -> None:
    """Add columns missing from a quotes table created by an older release."""
    dialect = conn.dialect.name
    existing = {col["name"] for col in inspect(conn).get_columns(validate_table_name("quotes"))}

    migrations = [
        f"ALTER TABLE quotes ADD COLUMN {column} {definitions[dialect]}"
        for column, definitions in _QUOTE_MIGRATIONS.items()
        if column not in existing
    ]
    for migration in migrations:
        conn.execute(text(migration))
    if migrations:
        logger.info(f"Applied {len(migrations)} quotes table migration(s)")

    if "last_accessed_at" not in existing:
        conn.execute(
            text("UPDATE quotes SET last_accessed_at = created_at WHERE last_accessed_at IS NULL")
        )


def seed_categories(conn: Connection) -> None:
    """Seed defaults into an empty table and make sure the sentinel exists."""
    count = conn.execute(text("SELECT COUNT(*) FROM categories")).scalar_one()
    names = DEFAULT_CATEGORIES if count == 0 else (SENTINEL_CATEGORY,)
    for name in names:
        conn.execute(
            text("INSERT INTO categories (name) VALUES (:name) ON CONFLICT (name) DO NOTHING"),
            {"name": name},
        )


def sync_id_sequences(conn: Connection) -> None:
    """Move identity sequences past the largest id after explicit-id inserts.

    SQLite AUTOINCREMENT tracks this itself; PostgreSQL identities do not.
    """
    if conn.dialect.name != "postgresql":
        return
    for table in sorted(ALLOWED_TABLES):
        validate_table_name(table)
        conn.execute(
            text(
                f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
                f"COALESCE((SELECT MAX(id) FROM {table}), 0) + 1, false)"
            )
        )
