"""Relational storage backend for quotebook.

Talks to PostgreSQL (or SQLite) through a SQLAlchemy engine. Every
statement is ``text()`` with bound parameters; input never reaches the
query text. Engine construction is lazy, so building a RemoteStore never
touches the network. Connectivity problems surface on first use as
BackendUnavailableError.
"""

import contextlib
import logging
import threading
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.engine.url import URL
from sqlalchemy.exc import DBAPIError, IntegrityError

from quotebook.protocols import BackendUnavailableError, ConflictError, NotFoundError, StorageError
from quotebook.types import SENTINEL_CATEGORY, Category, Quote, format_timestamp

from .base import (
    ConfidenceUpdate,
    QuoteStore,
    category_from_record,
    quote_from_record,
    quote_to_record,
)
from .query import ORDER_BY_SQL, QuoteQuery
from .schema import SUPPORTED_DIALECTS, init_schema, sync_id_sequences

logger = logging.getLogger(__name__)

_QUOTE_COLUMNS = (
    "title, content, author, comment, category, is_pinned, "
    "confidence, last_accessed_at, created_at"
)
_QUOTE_VALUES = (
    ":title, :content, :author, :comment, :category, :is_pinned, "
    ":confidence, :last_accessed_at, :created_at"
)


def normalize_database_url(database_url: str) -> URL:
    """Parse and validate a database URL.

    ``postgres://`` (as handed out by most hosted Postgres providers) is
    mapped to the psycopg driver.

    Raises:
        sqlalchemy.exc.ArgumentError: If the URL is malformed.
        ValueError: If the dialect is not supported.
    """
    url = make_url(database_url.strip())
    if url.drivername in ("postgres", "postgresql"):
        url = url.set(drivername="postgresql+psycopg")
    if url.get_backend_name() not in SUPPORTED_DIALECTS:
        raise ValueError(f"Unsupported database dialect: {url.get_backend_name()}")
    return url


def _python_lower(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


def _is_unique_violation(error: IntegrityError) -> bool:
    # psycopg exposes the SQLSTATE; sqlite3 only has the message.
    if getattr(error.orig, "sqlstate", None) == "23505":
        return True
    return "UNIQUE constraint failed" in str(error.orig)


def _register_sqlite_functions(dbapi_connection, connection_record) -> None:
    # SQLite's built-in lower() only folds ASCII.
    dbapi_connection.create_function("lower", 1, _python_lower, deterministic=True)


class RemoteStore(QuoteStore):
    """Quote store on a relational database.

    Args:
        database_url: SQLAlchemy-style URL, e.g. ``postgresql://...`` or
            ``sqlite:///path/to/quotes.db``.
        engine: Pre-built engine (tests); overrides ``database_url``.
    """

    backend_name = "remote"

    def __init__(self, database_url: Optional[str] = None, *, engine: Optional[Engine] = None):
        if engine is None:
            if not database_url:
                raise ValueError("database_url is required when no engine is given")
            url = normalize_database_url(database_url)
            engine = create_engine(url, pool_pre_ping=True)
        self._engine = engine
        self.dialect = engine.dialect.name
        if self.dialect == "sqlite":
            event.listen(engine, "connect", _register_sqlite_functions)
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        return self._engine

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        with self._schema_lock:
            if self._schema_ready:
                return
            with self._engine.begin() as conn:
                init_schema(conn)
            self._schema_ready = True

    @contextlib.contextmanager
    def _connect(self, operation: str) -> Iterator[Connection]:
        """One transaction per operation.

        Commits on success, rolls back on any exception, and translates
        driver errors: unique violations become ConflictError, other
        constraint violations StorageError, and everything else from the
        driver BackendUnavailableError.
        """
        try:
            self._ensure_schema()
            with self._engine.begin() as conn:
                yield conn
        except IntegrityError as e:
            logger.debug(f"{operation} violated a constraint: {e.orig}")
            if _is_unique_violation(e):
                raise ConflictError(f"{operation} violates a uniqueness constraint: {e.orig}") from e
            raise StorageError(f"{operation} violates a database constraint: {e.orig}") from e
        except DBAPIError as e:
            logger.debug(f"{operation} failed against remote backend: {e}")
            raise BackendUnavailableError(operation, e) from e

    def close(self) -> None:
        self._engine.dispose()

    @staticmethod
    def _params(quote: Quote) -> Dict[str, Any]:
        return quote_to_record(quote)

    # === Quotes ===

    def list_quotes(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> List[Quote]:
        where, params = QuoteQuery.build(category, search).to_sql()
        sql = f"SELECT * FROM quotes{where} {ORDER_BY_SQL}"
        with self._connect("list_quotes") as conn:
            rows = conn.execute(text(sql), params).mappings().all()
        return [quote_from_record(row) for row in rows]

    def get_quote(self, quote_id: int) -> Optional[Quote]:
        with self._connect("get_quote") as conn:
            row = (
                conn.execute(text("SELECT * FROM quotes WHERE id = :id"), {"id": quote_id})
                .mappings()
                .first()
            )
        return quote_from_record(row) if row else None

    def insert_quote(self, quote: Quote) -> Quote:
        params = self._params(quote)
        with self._connect("insert_quote") as conn:
            quote.id = conn.execute(
                text(f"INSERT INTO quotes ({_QUOTE_COLUMNS}) VALUES ({_QUOTE_VALUES}) RETURNING id"),
                params,
            ).scalar_one()
        return quote

    def update_quote(self, quote: Quote) -> Quote:
        with self._connect("update_quote") as conn:
            result = conn.execute(
                text(
                    """
                    UPDATE quotes SET
                        title = :title, content = :content, author = :author,
                        comment = :comment, category = :category, is_pinned = :is_pinned,
                        confidence = :confidence, last_accessed_at = :last_accessed_at
                    WHERE id = :id
                    """
                ),
                self._params(quote),
            )
            if result.rowcount == 0:
                raise NotFoundError("Quote", quote.id)
        return quote

    def delete_quote(self, quote_id: int) -> None:
        with self._connect("delete_quote") as conn:
            conn.execute(text("DELETE FROM quotes WHERE id = :id"), {"id": quote_id})

    def update_confidence(self, updates: Sequence[ConfidenceUpdate]) -> int:
        if not updates:
            return 0
        params = [
            {"id": quote_id, "confidence": confidence, "last_accessed_at": format_timestamp(accessed)}
            for quote_id, confidence, accessed in updates
        ]
        with self._connect("update_confidence") as conn:
            conn.execute(
                text(
                    "UPDATE quotes SET confidence = :confidence, "
                    "last_accessed_at = :last_accessed_at WHERE id = :id"
                ),
                params,
            )
        return len(params)

    def upsert_quote(self, quote: Quote) -> bool:
        params = self._params(quote)
        with self._connect("upsert_quote") as conn:
            exists = conn.execute(
                text("SELECT 1 FROM quotes WHERE id = :id"), {"id": quote.id}
            ).first()
            conn.execute(
                text(
                    f"""
                    INSERT INTO quotes (id, {_QUOTE_COLUMNS}) VALUES (:id, {_QUOTE_VALUES})
                    ON CONFLICT (id) DO UPDATE SET
                        title = excluded.title, content = excluded.content,
                        author = excluded.author, comment = excluded.comment,
                        category = excluded.category, is_pinned = excluded.is_pinned,
                        confidence = excluded.confidence,
                        last_accessed_at = excluded.last_accessed_at,
                        created_at = excluded.created_at
                    """
                ),
                params,
            )
        return exists is None

    def finish_import(self) -> None:
        with self._connect("finish_import") as conn:
            sync_id_sequences(conn)

    # === Categories ===

    def list_categories(self) -> List[Category]:
        with self._connect("list_categories") as conn:
            rows = conn.execute(text("SELECT id, name FROM categories ORDER BY id ASC")).mappings()
            return [category_from_record(row) for row in rows]

    def get_category(self, category_id: int) -> Optional[Category]:
        with self._connect("get_category") as conn:
            row = (
                conn.execute(
                    text("SELECT id, name FROM categories WHERE id = :id"), {"id": category_id}
                )
                .mappings()
                .first()
            )
        return category_from_record(row) if row else None

    def insert_category(self, name: str) -> Category:
        with self._connect("insert_category") as conn:
            row = (
                conn.execute(
                    text("INSERT INTO categories (name) VALUES (:name) RETURNING id, name"),
                    {"name": name},
                )
                .mappings()
                .one()
            )
            return category_from_record(row)

    def reassign_category(self, old_name: str, new_name: str) -> int:
        with self._connect("reassign_category") as conn:
            result = conn.execute(
                text("UPDATE quotes SET category = :new WHERE category = :old"),
                {"new": new_name, "old": old_name},
            )
            return result.rowcount

    def delete_category(self, category_id: int) -> None:
        with self._connect("delete_category") as conn:
            conn.execute(
                text("DELETE FROM categories WHERE id = :id AND name <> :sentinel"),
                {"id": category_id, "sentinel": SENTINEL_CATEGORY},
            )

    def upsert_category(self, category: Category) -> bool:
        with self._connect("upsert_category") as conn:
            exists = conn.execute(
                text("SELECT 1 FROM categories WHERE id = :id"), {"id": category.id}
            ).first()
            conn.execute(
                text(
                    "INSERT INTO categories (id, name) VALUES (:id, :name) "
                    "ON CONFLICT (id) DO UPDATE SET name = excluded.name"
                ),
                {"id": category.id, "name": category.name},
            )
        return exists is None

    # === Raw access (SQL console) ===

    def execute_raw(self, statement: str) -> List[Dict[str, Any]]:
        """Run one caller-supplied statement and return rows as dicts.

        Statements that return no rows yield ``[{"rowcount": n}]``.
        """
        with self._connect("execute_raw") as conn:
            result = conn.exec_driver_sql(statement)
            if result.returns_rows:
                return [dict(row) for row in result.mappings()]
            return [{"rowcount": result.rowcount}]
