"""QuoteBook: the data-access service callers talk to.

One QuoteBook is constructed at application start and passed to whatever
needs it. It holds the active store, chosen once, plus the local store used
when a remote read fails. Reads fall back; writes never do, because a
silent local write while the database is authoritative would diverge
invisibly.
"""

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar, Union

from quotebook.config import Settings, get_settings
from quotebook.lifecycle import boosted, clamp_confidence, decayed, is_stale
from quotebook.logging_config import log_decay, log_fallback, log_import
from quotebook.protocols import (
    BackendUnavailableError,
    InvalidFormatError,
    NotFoundError,
    ProtectedCategoryError,
)
from quotebook.storage import BackendSelector, QuoteStore
from quotebook.storage.local import KeyValueStore
from quotebook.transfer import ImportResult, build_snapshot, dump_snapshot, parse_snapshot
from quotebook.types import (
    DEFAULT_CONFIDENCE,
    EDITABLE_QUOTE_FIELDS,
    SENTINEL_CATEGORY,
    Category,
    Quote,
    utc_now,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TEXT_FIELDS = ("title", "author", "comment")


def _clean_text(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidFormatError(f"{field_name} must be a string, got {type(value).__name__}")
    return value


def _require_content(content: Any) -> str:
    if not isinstance(content, str) or not content.strip():
        raise InvalidFormatError("Quote content cannot be empty")
    return content


class QuoteBook:
    """Uniform quote/category operations over the selected backend.

    Args:
        store: The active store.
        fallback: Store used when a read on ``store`` raises
            BackendUnavailableError. None disables fallback.
        clock: Returns the current aware datetime.
    """

    def __init__(
        self,
        store: QuoteStore,
        fallback: Optional[QuoteStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._fallback = fallback if fallback is not store else None
        self._clock = clock or utc_now

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        kv: Optional[KeyValueStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "QuoteBook":
        """Build a QuoteBook with the backend the settings select."""
        selector = BackendSelector(settings or get_settings(), kv=kv)
        if selector.is_remote_active():
            logger.info("Using remote database storage")
        else:
            logger.info("Using local storage")
        return cls(selector.active, fallback=selector.local, clock=clock)

    @property
    def store(self) -> QuoteStore:
        return self._store

    def is_remote_active(self) -> bool:
        return self._store.backend_name == "remote"

    def close(self) -> None:
        self._store.close()
        if self._fallback is not None:
            self._fallback.close()

    # === Read path ===

    def _read(self, operation: str, fn: Callable[[QuoteStore], T]) -> T:
        """Run a read against the active store, falling back on remote failure."""
        try:
            return fn(self._store)
        except BackendUnavailableError as e:
            if self._fallback is None:
                raise
            logger.warning(f"{operation} failed on {self._store.backend_name}, reading local: {e}")
            log_fallback(operation, e)
            return fn(self._fallback)

    def list_quotes(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> List[Quote]:
        """Quotes matching category and search, pinned first, freshest first."""
        return self._read("list_quotes", lambda s: s.list_quotes(category, search))

    def list_categories(self) -> List[Category]:
        return self._read("list_categories", lambda s: s.list_categories())

    def load_view(
        self, category: Optional[str] = None, search: Optional[str] = None
    ) -> Tuple[List[Quote], List[Category]]:
        """Fetch quotes and categories concurrently, as a UI refresh does."""
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="quotebook-read") as pool:
            quotes = pool.submit(self.list_quotes, category, search)
            categories = pool.submit(self.list_categories)
            return quotes.result(), categories.result()

    def get_quote(self, quote_id: int) -> Quote:
        quote = self._store.get_quote(quote_id)
        if quote is None:
            raise NotFoundError("Quote", quote_id)
        return quote

    # === Quotes ===

    def _resolve_category(self, category: Optional[str]) -> str:
        if category is None or not str(category).strip():
            return SENTINEL_CATEGORY
        category = str(category).strip()
        if category == SENTINEL_CATEGORY:
            return category
        if category not in {c.name for c in self._store.list_categories()}:
            raise InvalidFormatError(f"Unknown category {category!r}")
        return category

    def add_quote(
        self,
        content: str,
        *,
        title: Optional[str] = "",
        author: Optional[str] = "",
        comment: Optional[str] = "",
        category: Optional[str] = None,
        is_pinned: bool = False,
    ) -> Quote:
        """Capture a new quote.

        Raises:
            InvalidFormatError: Empty content or unknown category.
        """
        now = self._clock()
        quote = Quote(
            content=_require_content(content),
            title=_clean_text(title, "title"),
            author=_clean_text(author, "author"),
            comment=_clean_text(comment, "comment"),
            category=self._resolve_category(category),
            is_pinned=bool(is_pinned),
            confidence=DEFAULT_CONFIDENCE,
            last_accessed_at=now,
            created_at=now,
        )
        saved = self._store.insert_quote(quote)
        logger.debug(f"Added quote {saved.id} in {saved.category!r}")
        return saved

    def update_quote(self, quote_id: int, **changes: Any) -> Quote:
        """Merge ``changes`` onto an existing quote and persist it.

        Fields not named in ``changes`` keep their stored values.

        Raises:
            InvalidFormatError: Unknown/immutable field or invalid value.
            NotFoundError: No quote with that id.
        """
        unknown = set(changes) - EDITABLE_QUOTE_FIELDS
        if unknown:
            raise InvalidFormatError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        cleaned: Dict[str, Any] = {}
        for field_name, value in changes.items():
            if field_name == "content":
                cleaned[field_name] = _require_content(value)
            elif field_name in _TEXT_FIELDS:
                cleaned[field_name] = _clean_text(value, field_name)
            elif field_name == "category":
                cleaned[field_name] = self._resolve_category(value)
            elif field_name == "is_pinned":
                cleaned[field_name] = bool(value)
            elif field_name == "confidence":
                cleaned[field_name] = clamp_confidence(value)

        existing = self.get_quote(quote_id)
        merged = dataclasses.replace(existing, **cleaned)
        return self._store.update_quote(merged)

    def set_pinned(self, quote_id: int, pinned: bool = True) -> Quote:
        return self.update_quote(quote_id, is_pinned=pinned)

    def delete_quote(self, quote_id: int) -> None:
        """Delete a quote. Deleting a missing id is not an error."""
        self._store.delete_quote(quote_id)

    # === Categories ===

    def add_category(self, name: str) -> Category:
        """Create a category.

        Raises:
            InvalidFormatError: Empty name.
            ConflictError: Name already exists.
        """
        if not isinstance(name, str) or not name.strip():
            raise InvalidFormatError("Category name cannot be empty")
        return self._store.insert_category(name.strip())

    def delete_category(self, category_id: int) -> None:
        """Delete a category, moving its quotes to the sentinel first.

        Reassignment and deletion are two steps. If deletion fails after
        reassignment, the error propagates and the quotes stay safely in
        the sentinel; running the delete again completes it.

        Raises:
            ProtectedCategoryError: The category is the sentinel.
        """
        category = self._store.get_category(category_id)
        if category is None:
            return
        if category.is_sentinel:
            raise ProtectedCategoryError(f"Category {SENTINEL_CATEGORY!r} cannot be deleted")

        moved = self._store.reassign_category(category.name, SENTINEL_CATEGORY)
        try:
            self._store.delete_category(category_id)
        except Exception:
            logger.error(
                f"Deleting category {category.name!r} failed after moving {moved} "
                f"quote(s) to {SENTINEL_CATEGORY!r}"
            )
            raise
        logger.info(f"Deleted category {category.name!r}, moved {moved} quote(s)")

    # === Knowledge lifecycle ===

    def boost(self, quote_id: int) -> Quote:
        """Raise a quote's confidence by one step and mark it accessed.

        Raises:
            NotFoundError: No quote with that id.
        """
        quote = self.get_quote(quote_id)
        quote.confidence = boosted(quote.confidence)
        quote.last_accessed_at = self._clock()
        self._store.update_confidence([(quote.id, quote.confidence, quote.last_accessed_at)])
        return quote

    def decay_sweep(self) -> int:
        """Decay every quote untouched for longer than the decay window.

        Each call lowers a stale quote by at most one step, however long it
        has been idle. ``last_accessed_at`` is left alone, so repeated calls
        keep decaying until the quote is boosted again.

        Returns:
            Number of quotes whose confidence changed.
        """
        now = self._clock()
        quotes = self._store.list_quotes()
        updates = []
        for quote in quotes:
            if quote.confidence <= 0.0 or not is_stale(quote.last_accessed_at, now):
                continue
            updates.append((quote.id, decayed(quote.confidence), quote.last_accessed_at))

        changed = self._store.update_confidence(updates)
        if changed:
            logger.info(f"Decay sweep lowered confidence on {changed} of {len(quotes)} quote(s)")
        log_decay(self._store.backend_name, changed, len(quotes))
        return changed

    # === Bulk transfer ===

    def export_snapshot(self) -> str:
        """Serialize every quote and category to snapshot JSON."""
        quotes = self.list_quotes()
        categories = self.list_categories()
        return dump_snapshot(build_snapshot(quotes, categories, self._clock()))

    def import_snapshot(self, data: Union[str, bytes, Mapping[str, Any]]) -> ImportResult:
        """Merge a snapshot into the active store, keyed by id.

        The whole snapshot is validated before anything is written.
        Existing records with a matching id are overwritten; new ids are
        inserted as-is; records absent from the snapshot are kept. A
        category renamed by id takes its quotes along to the new name.

        Raises:
            InvalidFormatError: Malformed snapshot.
        """
        snapshot = parse_snapshot(data)
        result = ImportResult()
        now = self._clock()

        names_by_id = {c.id: c.name for c in self._store.list_categories()}
        for record in snapshot.categories:
            owner = next((i for i, n in names_by_id.items() if n == record.name), None)
            current = names_by_id.get(record.id)
            # Names stay unique and the sentinel is never renamed away.
            if (owner is not None and owner != record.id) or (
                current == SENTINEL_CATEGORY and record.name != SENTINEL_CATEGORY
            ):
                result.categories_skipped += 1
                continue
            if self._store.upsert_category(record.to_category()):
                result.categories_inserted += 1
            else:
                result.categories_updated += 1
            if current is not None and current != record.name:
                # Renamed by id: quotes follow their category to the new name.
                moved = self._store.reassign_category(current, record.name)
                logger.info(f"Renamed category {current!r} to {record.name!r}, moved {moved} quote(s)")
            names_by_id[record.id] = record.name

        known = set(names_by_id.values())
        for record in snapshot.quotes:
            if self._store.upsert_quote(record.to_quote(known, now)):
                result.quotes_inserted += 1
            else:
                result.quotes_updated += 1

        self._store.finish_import()
        logger.info(f"Imported snapshot: {result}")
        log_import(self._store.backend_name, **dataclasses.asdict(result))
        return result
