"""
Unit tests for the SQLite blob store, the receipt cache and the session
that persists through it.
"""

import os
import tempfile

import pytest

from receipt_core.config import AppConfig
from receipt_core.models import Receipt, Product, UserSettings
from receipt_core.session import ReceiptSession
from receipt_core.storage import BlobStore, ReceiptCache


def make_receipt(store="Costco", total=20.0, **kwargs):
    return Receipt(store=store, date="2024-01-15", total=total,
                   products=[Product(name="Item", price=total)], **kwargs)


@pytest.fixture
def temp_store():
    """Create temporary blob store for testing."""
    temp_file = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
    temp_file.close()

    store = BlobStore(temp_file.name)
    store.initialize()

    yield store

    os.unlink(temp_file.name)


@pytest.fixture
def cache(temp_store):
    return ReceiptCache(temp_store, AppConfig())


class TestBlobStore:
    """Test cases for BlobStore."""

    def test_initialize_is_idempotent(self, temp_store):
        temp_store.initialize()
        assert temp_store.get("missing") is None

    def test_put_and_get(self, temp_store):
        temp_store.put("k", "v1")
        assert temp_store.get("k") == "v1"

    def test_put_overwrites(self, temp_store):
        temp_store.put("k", "v1")
        temp_store.put("k", "v2")
        assert temp_store.get("k") == "v2"

    def test_delete(self, temp_store):
        temp_store.put("k", "v")

        assert temp_store.delete("k") is True
        assert temp_store.get("k") is None
        assert temp_store.delete("k") is False


class TestReceiptCache:
    """Test cases for ReceiptCache."""

    def test_empty_cache(self, cache):
        assert cache.load_receipts() == []
        assert cache.load_settings().is_empty()

    def test_receipts_round_trip(self, cache):
        receipts = [make_receipt(id="a", source="cached"),
                    make_receipt(id="b", source="analyzed", duplicate_of="a")]

        cache.save_receipts(receipts)
        loaded = cache.load_receipts()

        assert [r.id for r in loaded] == ["a", "b"]
        assert loaded[1].duplicate_of == "a"
        assert loaded[0].products[0].name == "Item"

    def test_stored_json_uses_camel_case(self, cache, temp_store):
        cache.save_receipts([make_receipt(id="b", duplicate_of="a")])
        assert '"duplicateOf": "a"' in temp_store.get(cache.config.cache_key)

    @pytest.mark.parametrize("raw", ["{not json", '{"a": 1}', '[{"products": "nope"}]'])
    def test_corrupt_blob_reads_as_empty(self, cache, temp_store, raw):
        temp_store.put(cache.config.cache_key, raw)
        assert cache.load_receipts() == []

    def test_overflowing_numbers_load(self, cache, temp_store):
        temp_store.put(cache.config.cache_key,
                       '[{"id": "a", "total": "1e999", "products": [{"name": "Tea", "price": 1, "quantity": "1e999"}]}]')

        loaded = cache.load_receipts()

        assert loaded[0].total == 0.0
        assert loaded[0].products[0].quantity is None

    def test_load_split(self, cache):
        cache.save_receipts([make_receipt(id="x", source="excel"),
                             make_receipt(id="y", source="cached"),
                             make_receipt(id="z", source="analyzed")])

        spreadsheet, others = cache.load_split()

        assert [r.id for r in spreadsheet] == ["x"]
        assert [r.id for r in others] == ["y", "z"]

    def test_clear_receipts(self, cache):
        cache.save_receipts([make_receipt(id="a")])
        cache.clear_receipts()
        assert cache.load_receipts() == []

    def test_settings_round_trip(self, cache, temp_store):
        cache.save_settings(UserSettings(default_currency="Euro", tax_rate=0.05))

        loaded = cache.load_settings()

        assert loaded.default_currency == "Euro"
        assert loaded.tax_rate == 0.05
        assert "defaultCurrency" in temp_store.get(cache.config.settings_key)

    def test_corrupt_settings_read_as_empty(self, cache, temp_store):
        temp_store.put(cache.config.settings_key, "garbage")
        assert cache.load_settings().is_empty()


class TestReceiptSession:
    """Test cases for ReceiptSession."""

    def test_spreadsheet_beats_batch(self, cache):
        session = ReceiptSession(cache)
        session.set_batch([make_receipt()])

        session.add_spreadsheet([make_receipt()])

        assert len(session.receipts) == 1
        assert session.receipts[0].source == "excel"
        assert len(session.duplicates) == 1
        assert session.duplicates[0].duplicate_of == session.receipts[0].id

    def test_add_spreadsheet_appends(self):
        session = ReceiptSession()
        session.add_spreadsheet([make_receipt(total=1.0)])
        session.add_spreadsheet([make_receipt(total=2.0)])

        assert [r.total for r in session.receipts] == [1.0, 2.0]

    def test_set_batch_replaces(self):
        session = ReceiptSession()
        session.set_batch([make_receipt(total=1.0)])
        session.set_batch([make_receipt(total=2.0)])

        assert [r.total for r in session.receipts] == [2.0]

    def test_changes_are_persisted(self, cache):
        session = ReceiptSession(cache)
        session.add_spreadsheet([make_receipt(total=1.0)])
        session.set_current(make_receipt(total=2.0))

        restored = ReceiptSession(cache)
        restored.load_from_cache()

        assert sorted(r.total for r in restored.receipts) == [1.0, 2.0]
        assert [r.source for r in restored.sources.spreadsheet] == ["excel"]
        assert len(restored.sources.cached) == 1

    def test_set_current_can_clear(self):
        session = ReceiptSession()
        session.set_current(make_receipt())
        session.set_current(None)
        assert session.receipts == []

    def test_save_to_cache_upserts_by_id(self, cache):
        session = ReceiptSession(cache)
        session.save_to_cache(make_receipt(id="r1", total=5.0, source="cached"))
        session.save_to_cache(make_receipt(id="r1", total=7.0, source="cached"))

        assert len(session.receipts) == 1
        assert session.receipts[0].total == 7.0
        assert [r.total for r in cache.load_receipts()] == [7.0]

    def test_clear_all(self, cache):
        session = ReceiptSession(cache)
        session.add_spreadsheet([make_receipt()])

        session.clear_all()

        assert session.receipts == []
        assert session.duplicates == []
        assert cache.load_receipts() == []

    def test_clear_cache_keeps_batch(self, cache):
        session = ReceiptSession(cache)
        session.add_spreadsheet([make_receipt(total=1.0)])
        session.set_batch([make_receipt(total=2.0)])

        session.clear_cache()

        assert [r.total for r in session.receipts] == [2.0]
        assert cache.load_receipts() == []
