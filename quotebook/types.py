"""
Shared record types for quotebook.

Quote and Category are the vocabulary between the service layer and the
storage backends. A caller builds a Quote; a store persists it. The types
are the contract between them.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

# Reserved category. Always present, never deletable.
SENTINEL_CATEGORY = "未分类"

# Filter marker meaning "no category restriction".
ALL_CATEGORIES = "全部"

DEFAULT_CATEGORIES = ("读书心得", "金句摘抄", "灵感随笔", SENTINEL_CATEGORY)

DEFAULT_CONFIDENCE = 0.7


# === Shared Utility Functions ===


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Render a datetime as a fixed-width ISO string in UTC.

    Naive datetimes are taken to be UTC. The fixed width (always with
    microseconds and an explicit offset) makes text order equal time order.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse an ISO datetime string into an aware UTC datetime.

    Raises:
        ValueError: If the string is not a valid ISO datetime.
    """
    if not s:
        return None
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# === Records ===


@dataclass
class Category:
    """A named grouping for quotes."""

    id: int
    name: str

    @property
    def is_sentinel(self) -> bool:
        return self.name == SENTINEL_CATEGORY


@dataclass
class Quote:
    """A captured excerpt with its metadata and freshness state."""

    content: str
    id: Optional[int] = None
    title: str = ""
    author: str = ""
    comment: str = ""
    category: str = SENTINEL_CATEGORY
    is_pinned: bool = False
    # Knowledge freshness, always within [0.0, 1.0]
    confidence: float = DEFAULT_CONFIDENCE
    last_accessed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


# Fields a caller may change through update_quote.
EDITABLE_QUOTE_FIELDS = frozenset(
    {"title", "content", "author", "comment", "category", "is_pinned", "confidence"}
)
