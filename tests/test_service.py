"""Tests for the QuoteBook service, run against both backends where it matters."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from quotebook.protocols import (
    BackendUnavailableError,
    ConflictError,
    InvalidFormatError,
    NotFoundError,
    ProtectedCategoryError,
)
from quotebook.service import QuoteBook
from quotebook.storage import RemoteStore
from quotebook.types import SENTINEL_CATEGORY


class TestAddQuote:
    def test_defaults(self, book, clock):
        quote = book.add_quote("The Quiet Mind")
        assert quote.id is not None
        assert quote.category == SENTINEL_CATEGORY
        assert quote.confidence == 0.7
        assert quote.created_at == quote.last_accessed_at == clock.now
        assert book.get_quote(quote.id) == quote

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_content_rejected(self, book, content):
        with pytest.raises(InvalidFormatError):
            book.add_quote(content)
        assert book.list_quotes() == []

    def test_blank_category_resolves_to_sentinel(self, book):
        assert book.add_quote("x", category="  ").category == SENTINEL_CATEGORY

    def test_unknown_category_rejected(self, book):
        with pytest.raises(InvalidFormatError):
            book.add_quote("x", category="不存在")

    def test_none_text_fields_stored_empty(self, book):
        quote = book.add_quote("x", title=None, author=None, comment=None)
        assert (quote.title, quote.author, quote.comment) == ("", "", "")


class TestUpdateQuote:
    def test_merges_only_given_fields(self, book):
        quote = book.add_quote("original", author="A", title="T")
        updated = book.update_quote(quote.id, content="edited")
        assert updated.content == "edited"
        assert updated.author == "A"
        assert book.get_quote(quote.id).title == "T"

    def test_created_at_is_immutable(self, book):
        quote = book.add_quote("x")
        with pytest.raises(InvalidFormatError):
            book.update_quote(quote.id, created_at=quote.created_at + timedelta(days=1))

    def test_unknown_field_rejected(self, book):
        quote = book.add_quote("x")
        with pytest.raises(InvalidFormatError):
            book.update_quote(quote.id, colour="red")

    def test_missing_quote(self, book):
        with pytest.raises(NotFoundError):
            book.update_quote(999, content="x")

    def test_confidence_is_clamped(self, book):
        quote = book.add_quote("x")
        assert book.update_quote(quote.id, confidence=3).confidence == 1.0
        assert book.update_quote(quote.id, confidence=-1).confidence == 0.0

    def test_empty_content_rejected(self, book):
        quote = book.add_quote("x")
        with pytest.raises(InvalidFormatError):
            book.update_quote(quote.id, content=" ")

    def test_pin_and_unpin(self, book):
        quote = book.add_quote("x")
        assert book.set_pinned(quote.id, True).is_pinned is True
        assert book.set_pinned(quote.id, False).is_pinned is False


def test_get_missing_quote_raises(book):
    with pytest.raises(NotFoundError):
        book.get_quote(12345)


def test_delete_quote_is_idempotent(book):
    quote = book.add_quote("x")
    book.delete_quote(quote.id)
    book.delete_quote(quote.id)
    assert book.list_quotes() == []


class TestCategories:
    def test_add_trims_name(self, book):
        assert book.add_category("  随笔 ").name == "随笔"

    def test_add_empty_rejected(self, book):
        with pytest.raises(InvalidFormatError):
            book.add_category("   ")

    def test_add_duplicate_conflicts(self, book):
        book.add_category("随笔")
        with pytest.raises(ConflictError):
            book.add_category("随笔")

    def test_delete_reassigns_quotes_to_sentinel(self, book):
        category = book.add_category("随笔")
        first = book.add_quote("a", category="随笔")
        second = book.add_quote("b", category="随笔")
        other = book.add_quote("c", category="读书心得")

        book.delete_category(category.id)

        assert book.get_quote(first.id).category == SENTINEL_CATEGORY
        assert book.get_quote(second.id).category == SENTINEL_CATEGORY
        assert book.get_quote(other.id).category == "读书心得"
        assert "随笔" not in [c.name for c in book.list_categories()]

    def test_sentinel_is_protected(self, book):
        sentinel = next(c for c in book.list_categories() if c.is_sentinel)
        with pytest.raises(ProtectedCategoryError):
            book.delete_category(sentinel.id)
        assert any(c.is_sentinel for c in book.list_categories())

    def test_delete_missing_category_is_noop(self, book):
        before = book.list_categories()
        book.delete_category(987654)
        assert book.list_categories() == before

    def test_failed_delete_surfaces_after_reassignment(self, book):
        category = book.add_category("随笔")
        quote = book.add_quote("a", category="随笔")
        with patch.object(book.store, "delete_category", side_effect=RuntimeError("disk full")):
            with pytest.raises(RuntimeError):
                book.delete_category(category.id)
        # Interrupted state is safe and the delete can simply be re-run.
        assert book.get_quote(quote.id).category == SENTINEL_CATEGORY
        book.delete_category(category.id)
        assert "随笔" not in [c.name for c in book.list_categories()]


def test_end_to_end_pinned_first_in_category(book):
    book.add_category("随笔")
    book.add_quote("first thought", category="随笔", is_pinned=False)
    pinned = book.add_quote("second thought", category="随笔", is_pinned=True)
    book.add_quote("elsewhere", is_pinned=True)

    quotes = book.list_quotes("随笔")
    assert [q.content for q in quotes] == ["second thought", "first thought"]
    assert quotes[0].id == pinned.id


def test_search_finds_case_insensitive_substring(book):
    book.add_quote("The Quiet Mind")
    book.add_quote("Noise")
    assert [q.content for q in book.list_quotes(search="quiet")] == ["The Quiet Mind"]


def test_load_view_returns_quotes_and_categories(book):
    book.add_quote("x", category="读书心得")
    quotes, categories = book.load_view(category="读书心得")
    assert [q.content for q in quotes] == ["x"]
    assert len(categories) == 4


class TestLifecycle:
    def test_boost_raises_and_touches(self, book, clock):
        quote = book.add_quote("x")
        clock.advance(days=3)
        boosted = book.boost(quote.id)
        assert boosted.confidence == 0.8
        stored = book.get_quote(quote.id)
        assert stored.confidence == 0.8
        assert stored.last_accessed_at == clock.now

    def test_twenty_boosts_cap_at_one(self, book):
        quote = book.add_quote("x")
        for _ in range(20):
            book.boost(quote.id)
        assert book.get_quote(quote.id).confidence == 1.0

    def test_boost_missing_raises(self, book):
        with pytest.raises(NotFoundError):
            book.boost(404)

    def test_decay_is_one_step_per_sweep(self, book, clock):
        quote = book.add_quote("x")
        book.update_quote(quote.id, confidence=0.5)
        accessed = book.get_quote(quote.id).last_accessed_at
        clock.advance(days=10)

        assert book.decay_sweep() == 1
        assert book.get_quote(quote.id).confidence == 0.45
        assert book.decay_sweep() == 1
        stored = book.get_quote(quote.id)
        assert stored.confidence == 0.4
        assert stored.last_accessed_at == accessed

    def test_fresh_quotes_do_not_decay(self, book, clock):
        quote = book.add_quote("x")
        clock.advance(days=7)
        assert book.decay_sweep() == 0
        assert book.get_quote(quote.id).confidence == 0.7

    def test_zero_confidence_is_not_rewritten(self, book, clock):
        quote = book.add_quote("x")
        book.update_quote(quote.id, confidence=0)
        clock.advance(days=30)
        assert book.decay_sweep() == 0

    def test_boost_resets_staleness(self, book, clock):
        quote = book.add_quote("x")
        clock.advance(days=10)
        book.boost(quote.id)
        assert book.decay_sweep() == 0

    def test_decay_writes_store_event(self, book, clock, isolated_home):
        book.add_quote("x")
        clock.advance(days=8)
        book.decay_sweep()
        events = "".join(p.read_text() for p in (isolated_home / "logs").glob("store-events-*.log"))
        assert "| decay |" in events
        assert "decayed=1, scanned=1" in events


class TestReadFallback:
    @pytest.fixture
    def down_book(self, tmp_path, local_store, clock):
        # Unopenable path: every remote operation fails with a driver error.
        remote = RemoteStore(f"sqlite:///{tmp_path / 'missing' / 'remote.db'}")
        return QuoteBook(remote, fallback=local_store, clock=clock)

    def test_list_quotes_falls_back_to_local(self, down_book, local_store):
        QuoteBook(local_store).add_quote("cached locally")
        assert [q.content for q in down_book.list_quotes()] == ["cached locally"]

    def test_list_categories_falls_back_to_local(self, down_book):
        assert [c.name for c in down_book.list_categories()][-1] == SENTINEL_CATEGORY

    def test_fallback_is_logged_and_recorded(self, down_book, isolated_home, caplog):
        with caplog.at_level("WARNING", logger="quotebook.service"):
            down_book.list_quotes()
        assert "reading local" in caplog.text
        events = "".join(p.read_text() for p in (isolated_home / "logs").glob("store-events-*.log"))
        assert "| fallback | backend=remote | op=list_quotes" in events

    def test_export_falls_back(self, down_book, local_store):
        QuoteBook(local_store).add_quote("kept")
        assert "kept" in down_book.export_snapshot()

    def test_writes_never_fall_back(self, down_book, local_store):
        with pytest.raises(BackendUnavailableError):
            down_book.add_quote("lost?")
        assert local_store.list_quotes() == []

    def test_no_fallback_store_raises(self, tmp_path):
        remote = RemoteStore(f"sqlite:///{tmp_path / 'missing' / 'remote.db'}")
        with pytest.raises(BackendUnavailableError):
            QuoteBook(remote).list_quotes()

    def test_remote_healthy_does_not_touch_local(self, remote_book, local_store):
        remote_book.add_quote("remote only")
        assert [q.content for q in remote_book.list_quotes()] == ["remote only"]
        assert local_store.list_quotes() == []
        assert remote_book.is_remote_active()
