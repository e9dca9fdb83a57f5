"""Local storage backend for quotebook.

Keeps two collections, ``quotes`` and ``categories``, each serialized as a
JSON array under its own key in a key/value store. Every operation loads
the collection, changes it in memory, and writes it back only once the
whole change has been applied.
"""

import json
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Protocol, Sequence

from quotebook.protocols import ConflictError, NotFoundError, StorageError
from quotebook.types import DEFAULT_CATEGORIES, SENTINEL_CATEGORY, Category, Quote

from .base import (
    ConfidenceUpdate,
    QuoteStore,
    category_from_record,
    category_to_record,
    quote_from_record,
    quote_to_record,
)
from .query import QuoteQuery

logger = logging.getLogger(__name__)

QUOTES_KEY = "quotes"
CATEGORIES_KEY = "categories"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


def _next_id(existing: Sequence[Optional[int]]) -> int:
    """Millisecond timestamp id, bumped past the largest existing id."""
    candidate = int(time.time() * 1000)
    highest = max((i for i in existing if i is not None), default=0)
    return candidate if candidate > highest else highest + 1


class LocalStore(QuoteStore):
    """Quote store over a local key/value store.

    Args:
        kv: Any object with ``get(key)`` / ``set(key, value)`` on strings.
    """

    backend_name = "local"

    def __init__(self, kv: KeyValueStore):
        self._kv = kv
        # Single writer: serialize read-modify-write cycles
        self._lock = threading.RLock()

    # === Collection I/O ===

    def _load(self, key: str) -> Optional[List[Dict[str, Any]]]:
        raw = self._kv.get(key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Local collection {key!r} is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise StorageError(f"Local collection {key!r} must be a JSON array")
        return data

    def _save(self, key: str, records: List[Dict[str, Any]]) -> None:
        self._kv.set(key, json.dumps(records, ensure_ascii=False))

    def _load_quotes(self) -> List[Quote]:
        return [quote_from_record(r) for r in self._load(QUOTES_KEY) or []]

    def _save_quotes(self, quotes: List[Quote]) -> None:
        self._save(QUOTES_KEY, [quote_to_record(q) for q in quotes])

    def _load_categories(self) -> List[Category]:
        records = self._load(CATEGORIES_KEY)
        if records is None:
            categories = [Category(id=i, name=name) for i, name in enumerate(DEFAULT_CATEGORIES, 1)]
            self._save_categories(categories)
            return categories

        categories = [category_from_record(r) for r in records]
        if not any(c.is_sentinel for c in categories):
            logger.warning("Local categories lacked the sentinel category; restoring it")
            categories.append(Category(id=_next_id([c.id for c in categories]), name=SENTINEL_CATEGORY))
            self._save_categories(categories)
        return categories

    def _save_categories(self, categories: List[Category]) -> None:
        self._save(CATEGORIES_KEY, [category_to_record(c) for c in categories])

    # === Quotes ===

    def list_quotes(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> List[Quote]:
        with self._lock:
            quotes = self._load_quotes()
        return QuoteQuery.build(category, search).apply(quotes)

    def get_quote(self, quote_id: int) -> Optional[Quote]:
        with self._lock:
            for quote in self._load_quotes():
                if quote.id == quote_id:
                    return quote
        return None

    def insert_quote(self, quote: Quote) -> Quote:
        with self._lock:
            quotes = self._load_quotes()
            quote.id = _next_id([q.id for q in quotes])
            quotes.append(quote)
            self._save_quotes(quotes)
        return quote

    def update_quote(self, quote: Quote) -> Quote:
        with self._lock:
            quotes = self._load_quotes()
            for idx, existing in enumerate(quotes):
                if existing.id == quote.id:
                    quotes[idx] = quote
                    self._save_quotes(quotes)
                    return quote
        raise NotFoundError("Quote", quote.id)

    def delete_quote(self, quote_id: int) -> None:
        with self._lock:
            quotes = self._load_quotes()
            remaining = [q for q in quotes if q.id != quote_id]
            if len(remaining) != len(quotes):
                self._save_quotes(remaining)

    def update_confidence(self, updates: Sequence[ConfidenceUpdate]) -> int:
        if not updates:
            return 0
        by_id = {quote_id: (confidence, accessed) for quote_id, confidence, accessed in updates}
        updated = 0
        with self._lock:
            quotes = self._load_quotes()
            for quote in quotes:
                if quote.id in by_id:
                    quote.confidence, quote.last_accessed_at = by_id[quote.id]
                    updated += 1
            if updated:
                self._save_quotes(quotes)
        return updated

    def upsert_quote(self, quote: Quote) -> bool:
        with self._lock:
            quotes = self._load_quotes()
            for idx, existing in enumerate(quotes):
                if existing.id == quote.id:
                    quotes[idx] = quote
                    self._save_quotes(quotes)
                    return False
            quotes.append(quote)
            self._save_quotes(quotes)
        return True

    # === Categories ===

    def list_categories(self) -> List[Category]:
        with self._lock:
            return sorted(self._load_categories(), key=lambda c: c.id)

    def get_category(self, category_id: int) -> Optional[Category]:
        with self._lock:
            for category in self._load_categories():
                if category.id == category_id:
                    return category
        return None

    def insert_category(self, name: str) -> Category:
        with self._lock:
            categories = self._load_categories()
            if any(c.name == name for c in categories):
                raise ConflictError(f"Category {name!r} already exists")
            category = Category(id=_next_id([c.id for c in categories]), name=name)
            categories.append(category)
            self._save_categories(categories)
        return category

    def reassign_category(self, old_name: str, new_name: str) -> int:
        with self._lock:
            quotes = self._load_quotes()
            moved = 0
            for quote in quotes:
                if quote.category == old_name:
                    quote.category = new_name
                    moved += 1
            if moved:
                self._save_quotes(quotes)
        return moved

    def delete_category(self, category_id: int) -> None:
        with self._lock:
            categories = self._load_categories()
            remaining = [c for c in categories if c.id != category_id or c.is_sentinel]
            if len(remaining) != len(categories):
                self._save_categories(remaining)

    def upsert_category(self, category: Category) -> bool:
        with self._lock:
            categories = self._load_categories()
            for existing in categories:
                if existing.id == category.id:
                    if existing.name != category.name:
                        if any(c.name == category.name for c in categories):
                            raise ConflictError(f"Category {category.name!r} already exists")
                        existing.name = category.name
                        self._save_categories(categories)
                    return False
            if any(c.name == category.name for c in categories):
                raise ConflictError(f"Category {category.name!r} already exists")
            categories.append(category)
            self._save_categories(categories)
        return True
