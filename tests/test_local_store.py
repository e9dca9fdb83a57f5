"""Tests for LocalStore and the key/value stores under it."""

import json
import os
import stat
from datetime import datetime, timezone

import pytest

from quotebook.protocols import ConflictError, NotFoundError, StorageError
from quotebook.storage import FileKeyValueStore, LocalStore, MemoryKeyValueStore
from quotebook.storage.kv import validate_key
from quotebook.storage.local import CATEGORIES_KEY, QUOTES_KEY
from quotebook.types import DEFAULT_CATEGORIES, SENTINEL_CATEGORY, Category, Quote

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _quote(content="text", **kwargs):
    kwargs.setdefault("created_at", NOW)
    kwargs.setdefault("last_accessed_at", NOW)
    return Quote(content=content, **kwargs)


class TestFileKeyValueStore:
    def test_missing_key_is_none(self, tmp_path):
        assert FileKeyValueStore(tmp_path).get("quotes") is None

    def test_set_then_get(self, tmp_path):
        kv = FileKeyValueStore(tmp_path / "data")
        kv.set("quotes", "[1, 2]")
        assert kv.get("quotes") == "[1, 2]"
        assert (tmp_path / "data" / "quotes.json").exists()

    def test_file_is_private(self, tmp_path):
        kv = FileKeyValueStore(tmp_path)
        kv.set("categories", "[]")
        mode = stat.S_IMODE(os.stat(tmp_path / "categories.json").st_mode)
        assert mode == 0o600

    def test_no_temp_files_left_behind(self, tmp_path):
        kv = FileKeyValueStore(tmp_path)
        kv.set("quotes", "[]")
        kv.set("quotes", "[1]")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["quotes.json"]

    @pytest.mark.parametrize("key", ["../etc", "Quotes", "", "a/b", "1abc"])
    def test_rejects_unsafe_keys(self, key):
        with pytest.raises(ValueError):
            validate_key(key)


class TestCategorySeeding:
    def test_fresh_store_seeds_defaults_in_order(self, local_store):
        categories = local_store.list_categories()
        assert [c.name for c in categories] == list(DEFAULT_CATEGORIES)
        assert [c.id for c in categories] == [1, 2, 3, 4]

    def test_seed_is_persisted(self):
        kv = MemoryKeyValueStore()
        LocalStore(kv).list_categories()
        assert json.loads(kv.get(CATEGORIES_KEY))[0] == {"id": 1, "name": "读书心得"}

    def test_missing_sentinel_is_restored(self):
        kv = MemoryKeyValueStore({CATEGORIES_KEY: json.dumps([{"id": 1, "name": "诗"}])})
        names = [c.name for c in LocalStore(kv).list_categories()]
        assert names == ["诗", SENTINEL_CATEGORY]

    def test_corrupt_collection_raises(self):
        kv = MemoryKeyValueStore({QUOTES_KEY: "{not json"})
        with pytest.raises(StorageError):
            LocalStore(kv).list_quotes()

    def test_non_array_collection_raises(self):
        kv = MemoryKeyValueStore({QUOTES_KEY: '{"id": 1}'})
        with pytest.raises(StorageError):
            LocalStore(kv).list_quotes()


class TestQuotes:
    def test_insert_assigns_increasing_ids(self, local_store):
        first = local_store.insert_quote(_quote("a"))
        second = local_store.insert_quote(_quote("b"))
        assert first.id is not None
        assert second.id > first.id

    def test_ids_are_millisecond_timestamps(self, local_store):
        quote = local_store.insert_quote(_quote())
        # 2020-01-01 in milliseconds
        assert quote.id > 1_577_836_800_000

    def test_persisted_record_shape(self):
        kv = MemoryKeyValueStore()
        LocalStore(kv).insert_quote(_quote("hello", author="某人"))
        record = json.loads(kv.get(QUOTES_KEY))[0]
        assert record["content"] == "hello"
        assert record["author"] == "某人"
        assert record["created_at"] == "2026-03-01T00:00:00.000000+00:00"

    def test_update_missing_raises(self, local_store):
        with pytest.raises(NotFoundError):
            local_store.update_quote(_quote(id=123))

    def test_delete_missing_is_noop(self, local_store):
        local_store.insert_quote(_quote())
        local_store.delete_quote(999)
        assert len(local_store.list_quotes()) == 1

    def test_records_missing_new_fields_get_defaults(self):
        legacy = [{"id": 5, "content": "old", "category": "读书心得", "created_at": "2025-01-01T00:00:00Z"}]
        kv = MemoryKeyValueStore({QUOTES_KEY: json.dumps(legacy)})
        quote = LocalStore(kv).get_quote(5)
        assert quote.confidence == 0.7
        assert quote.is_pinned is False
        assert quote.title == ""
        assert quote.last_accessed_at == quote.created_at

    def test_update_confidence_batch(self, local_store):
        a = local_store.insert_quote(_quote("a"))
        b = local_store.insert_quote(_quote("b"))
        changed = local_store.update_confidence([(a.id, 0.1, NOW), (b.id, 0.2, NOW), (999, 0.3, NOW)])
        assert changed == 2
        assert local_store.get_quote(b.id).confidence == 0.2

    def test_upsert_reports_insert_then_update(self, local_store):
        assert local_store.upsert_quote(_quote("x", id=42)) is True
        assert local_store.upsert_quote(_quote("y", id=42)) is False
        assert local_store.get_quote(42).content == "y"


class TestCategories:
    def test_duplicate_name_conflicts(self, local_store):
        local_store.insert_category("诗")
        with pytest.raises(ConflictError):
            local_store.insert_category("诗")

    def test_sentinel_row_is_never_deleted(self, local_store):
        sentinel = next(c for c in local_store.list_categories() if c.is_sentinel)
        local_store.delete_category(sentinel.id)
        assert any(c.is_sentinel for c in local_store.list_categories())

    def test_reassign_moves_quotes_and_is_repeatable(self, local_store):
        local_store.insert_quote(_quote("a", category="读书心得"))
        local_store.insert_quote(_quote("b", category="读书心得"))
        assert local_store.reassign_category("读书心得", SENTINEL_CATEGORY) == 2
        assert local_store.reassign_category("读书心得", SENTINEL_CATEGORY) == 0

    def test_upsert_category_rename_clash_conflicts(self, local_store):
        with pytest.raises(ConflictError):
            local_store.upsert_category(Category(id=1, name="金句摘抄"))

    def test_upsert_category_keeps_id(self, local_store):
        assert local_store.upsert_category(Category(id=77, name="诗")) is True
        assert local_store.get_category(77).name == "诗"
