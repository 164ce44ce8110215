"""
Unit tests for receipt fingerprints and similarity checks.
"""

import pytest

from receipt_core.identity import (
    generate_receipt_id, assign_id, process_receipts,
    are_receipts_similar, find_similar,
)
from receipt_core.models import Receipt, Product, InvalidInputError


def make_receipt(store="Trader Joe's", date="01/15/2024", total=12.48, items=2, **kwargs):
    products = [Product(name=f"Item {i}", price=1.0) for i in range(items)]
    return Receipt(store=store, date=date, total=total, products=products, **kwargs)


class TestGenerateReceiptId:
    """Test cases for the fingerprint."""

    def test_fingerprint_format(self):
        assert generate_receipt_id(make_receipt()) == "traderjoes-01152024-1248-2"

    def test_missing_store_and_date(self):
        receipt = Receipt(total=5, products=[])
        assert generate_receipt_id(receipt) == "unknown-unknown-500-0"

    def test_store_without_alphanumerics(self):
        assert generate_receipt_id(make_receipt(store="!!!")).startswith("unknown-")

    def test_date_formats_collapse_to_digits(self):
        a = make_receipt(date="2024-01-15")
        b = make_receipt(date="2024/01/15")
        assert generate_receipt_id(a) == generate_receipt_id(b)

    def test_total_rounds_to_cents(self):
        assert generate_receipt_id(make_receipt(total=0.1 + 0.2)).split("-")[2] == "30"
        assert generate_receipt_id(make_receipt(total=1.005 + 0.0001)).split("-")[2] == "101"

    def test_product_contents_beyond_count_are_ignored(self):
        a = make_receipt()
        b = make_receipt()
        b.products[0] = Product(name="Something else", price=99)
        assert generate_receipt_id(a) == generate_receipt_id(b)

    def test_deterministic(self):
        receipt = make_receipt()
        assert generate_receipt_id(receipt) == generate_receipt_id(receipt)


class TestAssignId:
    """Test cases for id assignment and processing."""

    def test_assigns_missing_id(self):
        receipt = make_receipt()
        assigned = assign_id(receipt)

        assert assigned.id == generate_receipt_id(receipt)
        assert receipt.id is None

    def test_keeps_existing_id(self):
        assert assign_id(make_receipt(id="fixed")).id == "fixed"

    def test_process_receipts_tags_source(self):
        processed = process_receipts([make_receipt(), make_receipt(source="cached")], "excel")

        assert processed[0].source == "excel"
        assert processed[1].source == "cached"
        assert all(r.id for r in processed)

    def test_process_receipts_default_source(self):
        assert process_receipts([make_receipt()])[0].source == "analyzed"

    def test_process_receipts_accepts_dicts(self):
        processed = process_receipts([{"store": "Shop", "total": "3.50", "products": []}])
        assert processed[0].id == "shop-unknown-350-0"

    def test_process_receipts_rejects_non_list(self):
        with pytest.raises(InvalidInputError):
            process_receipts(make_receipt())


class TestSimilarity:
    """Test cases for are_receipts_similar."""

    def test_same_fingerprint(self):
        assert are_receipts_similar(make_receipt(), make_receipt(store="TRADER JOES"))

    def test_within_one_cent(self):
        """Totals that round to different cents still match on the secondary check."""
        a = make_receipt(total=10.004)
        b = make_receipt(total=10.006)

        assert generate_receipt_id(a) != generate_receipt_id(b)
        assert are_receipts_similar(a, b)

    def test_secondary_check_needs_store_and_date(self):
        a = make_receipt(store=None, total=10.004)
        b = make_receipt(store=None, total=10.006)
        assert not are_receipts_similar(a, b)

    def test_different_dates(self):
        assert not are_receipts_similar(make_receipt(date="01/15/2024"), make_receipt(date="01/16/2024"))

    def test_different_item_counts(self):
        assert not are_receipts_similar(make_receipt(items=2), make_receipt(items=3))

    def test_find_similar(self):
        probe = make_receipt()
        others = [make_receipt(), make_receipt(total=50), probe]

        matches = find_similar(probe, others)

        assert len(matches) == 1
        assert matches[0] is others[0]
