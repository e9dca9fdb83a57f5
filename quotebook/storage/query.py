"""Quote filter and ordering contract, rendered for both backends.

A QuoteQuery normalizes the caller's (category, search) pair once and then
renders it two ways:

- ``to_sql()``: a WHERE/ORDER BY fragment with bound parameters for the
  relational store
- ``apply()``: a filter and sort over an in-memory list for the local store

Both renderings must produce the same quotes in the same order.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from quotebook.types import ALL_CATEGORIES, Quote

# Text fields a search term is matched against.
SEARCH_FIELDS = ("title", "content", "author", "comment")

ORDER_BY_SQL = "ORDER BY is_pinned DESC, confidence DESC, created_at DESC, id DESC"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def escape_like_pattern(pattern: str) -> str:
    """Escape LIKE pattern special characters to prevent pattern injection."""
    return pattern.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class QuoteQuery:
    """A normalized quote filter.

    ``category`` is None when no category restriction applies; ``search`` is
    None when no search restriction applies, otherwise lower-cased.
    """

    category: Optional[str] = None
    search: Optional[str] = None

    @classmethod
    def build(cls, category: Optional[str] = None, search: Optional[str] = None) -> "QuoteQuery":
        if not category or category == ALL_CATEGORIES:
            category = None
        term = (search or "").strip()
        return cls(category=category, search=term.lower() if term else None)

    # --- Relational rendering ---

    def to_sql(self) -> Tuple[str, Dict[str, Any]]:
        """Render as a WHERE clause (possibly empty) plus bound parameters."""
        clauses: List[str] = []
        params: Dict[str, Any] = {}

        if self.category is not None:
            clauses.append("category = :category")
            params["category"] = self.category

        if self.search is not None:
            field_clauses = [
                f"LOWER(COALESCE({field}, '')) LIKE :search ESCAPE '\\'"
                for field in SEARCH_FIELDS
            ]
            clauses.append("(" + " OR ".join(field_clauses) + ")")
            params["search"] = f"%{escape_like_pattern(self.search)}%"

        where = " WHERE " + " AND ".join(clauses) if clauses else ""
        return where, params

    # --- In-memory rendering ---

    def matches(self, quote: Quote) -> bool:
        if self.category is not None and quote.category != self.category:
            return False
        if self.search is not None:
            return any(
                self.search in (getattr(quote, field) or "").lower() for field in SEARCH_FIELDS
            )
        return True

    def apply(self, quotes: Iterable[Quote]) -> List[Quote]:
        """Filter and order quotes exactly as ``to_sql`` + ORDER_BY_SQL would."""
        return sorted((q for q in quotes if self.matches(q)), key=sort_key)


def sort_key(quote: Quote) -> Tuple:
    """Canonical ordering key: pinned, confidence desc, newest, highest id."""
    created = quote.created_at or _EPOCH
    return (
        0 if quote.is_pinned else 1,
        -quote.confidence,
        -(created - _EPOCH),
        -(quote.id or 0),
    )
