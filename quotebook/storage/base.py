"""Storage contract for quotebook backends.

This defines the interface that all storage backends must implement.
Currently supported:
- RemoteStore: relational database (PostgreSQL, SQLite) through SQLAlchemy
- LocalStore: JSON collections in a local key/value store

Stores are deliberately thin. They persist and query records; defaults,
validation and the confidence lifecycle live in the service layer so both
backends see identical inputs.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from quotebook.types import (
    DEFAULT_CONFIDENCE,
    SENTINEL_CATEGORY,
    Category,
    Quote,
    format_timestamp,
    parse_datetime,
)

# (quote_id, confidence, last_accessed_at)
ConfidenceUpdate = Tuple[int, float, datetime]


class QuoteStore(ABC):
    """Uniform data-access contract implemented by every backend."""

    #: Short backend label used in logs and store events.
    backend_name: str = "abstract"

    # === Quotes ===

    @abstractmethod
    def list_quotes(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> List[Quote]:
        """Return quotes matching the filter, in canonical order.

        Canonical order: pinned first, then confidence desc, then
        created_at desc, then id desc.
        """

    @abstractmethod
    def get_quote(self, quote_id: int) -> Optional[Quote]:
        """Get a quote by id, or None."""

    @abstractmethod
    def insert_quote(self, quote: Quote) -> Quote:
        """Persist a new quote, assigning its id. Returns the stored record."""

    @abstractmethod
    def update_quote(self, quote: Quote) -> Quote:
        """Overwrite an existing quote by id.

        Raises:
            NotFoundError: If no quote has that id.
        """

    @abstractmethod
    def delete_quote(self, quote_id: int) -> None:
        """Delete a quote. Deleting a missing id is not an error."""

    @abstractmethod
    def update_confidence(self, updates: Sequence[ConfidenceUpdate]) -> int:
        """Write confidence/last_accessed_at for many quotes in one batch.

        Returns:
            Number of quotes updated.
        """

    @abstractmethod
    def upsert_quote(self, quote: Quote) -> bool:
        """Insert or overwrite a quote keeping its id. True if inserted."""

    # === Categories ===

    @abstractmethod
    def list_categories(self) -> List[Category]:
        """Return all categories ordered by id."""

    @abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]:
        """Get a category by id, or None."""

    @abstractmethod
    def insert_category(self, name: str) -> Category:
        """Persist a new category.

        Raises:
            ConflictError: If the name is already taken.
        """

    @abstractmethod
    def reassign_category(self, old_name: str, new_name: str) -> int:
        """Move every quote in ``old_name`` to ``new_name``. Safe to repeat.

        Returns:
            Number of quotes moved.
        """

    @abstractmethod
    def delete_category(self, category_id: int) -> None:
        """Delete a category row. Never deletes the sentinel category."""

    @abstractmethod
    def upsert_category(self, category: Category) -> bool:
        """Insert or rename a category keeping its id. True if inserted."""

    def finish_import(self) -> None:
        """Hook run once after a bulk import of explicit-id records."""
        pass

    def close(self) -> None:
        """Release any resources held by the store."""
        pass


# === Record serialization ===


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return parse_datetime(str(value))


def quote_to_record(quote: Quote) -> Dict[str, Any]:
    """Convert a Quote into a flat dict of storable values."""
    return {
        "id": quote.id,
        "title": quote.title,
        "content": quote.content,
        "author": quote.author,
        "comment": quote.comment,
        "category": quote.category,
        "is_pinned": bool(quote.is_pinned),
        "confidence": quote.confidence,
        "last_accessed_at": (
            format_timestamp(quote.last_accessed_at) if quote.last_accessed_at else None
        ),
        "created_at": format_timestamp(quote.created_at) if quote.created_at else None,
    }


def quote_from_record(record: Mapping[str, Any]) -> Quote:
    """Build a Quote from a stored dict or database row mapping."""
    created_at = _timestamp(record.get("created_at"))
    last_accessed_at = _timestamp(record.get("last_accessed_at")) or created_at
    confidence = record.get("confidence")
    raw_id = record.get("id")
    return Quote(
        id=int(raw_id) if raw_id is not None else None,
        title=_text(record.get("title")),
        content=_text(record.get("content")),
        author=_text(record.get("author")),
        comment=_text(record.get("comment")),
        category=record.get("category") or SENTINEL_CATEGORY,
        is_pinned=bool(record.get("is_pinned")),
        confidence=float(confidence) if confidence is not None else DEFAULT_CONFIDENCE,
        last_accessed_at=last_accessed_at,
        created_at=created_at,
    )


def category_to_record(category: Category) -> Dict[str, Any]:
    return {"id": category.id, "name": category.name}


def category_from_record(record: Mapping[str, Any]) -> Category:
    return Category(id=int(record["id"]), name=str(record["name"]))
