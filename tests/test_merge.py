"""
Unit tests for merging exported workbooks.
Tests concatenation of receipt sheets and preservation of foreign sheets.
"""

import pytest

from receipt_core.export import DataExporter
from receipt_core.merge import WorkbookMerger, merge_all
from receipt_core.models import Receipt, Product, Sheet, Workbook, UserSettings, InvalidInputError
from receipt_core.settings import parse_settings
from receipt_core.workbook import read_workbook, write_workbook


def exported(store, notes=None, settings=None):
    """A workbook as the exporter writes it, optionally with a Notes sheet."""
    receipt = Receipt(store=store, date="2024-02-01", total=3.0, products=[Product(name="Pen", price=3.0)])
    workbook = DataExporter().encode([receipt], settings)
    if notes is not None:
        workbook.sheets.append(Sheet.from_rows("Notes", [{"Note": notes}]))
    return workbook


class TestWorkbookMerger:
    """Test cases for WorkbookMerger.merge_all."""

    @pytest.fixture
    def merger(self):
        return WorkbookMerger()

    def test_colliding_foreign_sheets_are_renamed(self, merger):
        merged = merger.merge_all([exported("A", notes="from A"), exported("B", notes="from B")])

        assert "Notes" in merged.sheet_names
        assert "Notes_1" in merged.sheet_names
        assert merged.get_sheet("Notes").rows == [{"Note": "from A"}]
        assert merged.get_sheet("Notes_1").rows == [{"Note": "from B"}]

    def test_suffix_counts_up(self, merger):
        merged = merger.merge_all([exported(s, notes=s) for s in ("A", "B", "C")])

        assert [n for n in merged.sheet_names if n.startswith("Notes")] == ["Notes", "Notes_1", "Notes_2"]
        assert merged.get_sheet("Notes_2").rows == [{"Note": "C"}]

    def test_renamed_sheet_fits_excel_title_limit(self, merger):
        long_name = "Quarterly Grocery Budget Notes!"[:31]
        a, b = exported("A"), exported("B")
        a.sheets.append(Sheet.from_rows(long_name, [{"Note": "a"}]))
        b.sheets.append(Sheet.from_rows(long_name, [{"Note": "b"}]))

        merged = merger.merge_all([a, b])

        renamed = long_name[:29] + "_1"
        assert renamed in merged.sheet_names
        assert all(len(name) <= 31 for name in merged.sheet_names)
        assert merged.get_sheet(renamed).rows == [{"Note": "b"}]
        assert read_workbook(write_workbook(merged)).get_sheet(renamed).rows == [{"Note": "b"}]

    def test_single_workbook_is_not_duplicated(self, merger):
        merged = merger.merge_all([exported("A", notes="only")])

        assert merged.sheet_names.count("Notes") == 1
        assert "Notes_1" not in merged.sheet_names

    def test_products_and_summary_are_concatenated(self, merger):
        a, b = exported("A"), exported("B")

        merged = merger.merge_all([a, b])

        products = merged.get_sheet("Products")
        summary = merged.get_sheet("Summary")
        assert len(products.rows) == len(a.get_sheet("Products").rows) + len(b.get_sheet("Products").rows)
        assert len(summary.rows) == len(a.get_sheet("Summary").rows) + len(b.get_sheet("Summary").rows)
        assert products.rows[0]["Product Name"] == "=== A - 2024-02-01 ==="

    def test_merged_products_decode_to_all_receipts(self, merger):
        merged = merger.merge_all([exported("A"), exported("B")])

        receipts = DataExporter().decode(merged)

        assert [r.store for r in receipts] == ["A", "B"]

    def test_last_settings_win_and_stay_hidden(self, merger):
        merged = merger.merge_all([
            exported("A", settings=UserSettings(default_currency="Euro")),
            exported("B", settings=UserSettings(default_currency="Yen")),
        ])

        settings_sheet = merged.get_sheet("Settings")
        assert settings_sheet.visibility == "hidden"
        assert len(settings_sheet.rows) == 9
        assert parse_settings(merged).default_currency == "Yen"

    def test_reserved_sheets_created_when_base_lacks_them(self, merger):
        base = Workbook(sheets=[Sheet.from_rows("Budget", [{"Month": "Jan"}])])

        merged = merger.merge_all([base, exported("B")])

        assert merged.sheet_names == ["Budget", "Products", "Summary", "Settings"]
        assert merged.get_sheet("Settings").visibility == "hidden"
        assert merged.get_sheet("Budget").rows == [{"Month": "Jan"}]

    def test_foreign_visibility_is_kept(self, merger):
        other = exported("B")
        other.sheets.append(Sheet(name="Secret", visibility="very-hidden"))

        merged = merger.merge_all([exported("A"), other])

        assert merged.get_sheet("Secret").visibility == "very-hidden"

    def test_inputs_are_not_mutated(self, merger):
        a, b = exported("A", notes="a"), exported("B", notes="b")
        names = list(a.sheet_names)
        rows = len(a.get_sheet("Products").rows)

        merger.merge_all([a, b])

        assert a.sheet_names == names
        assert len(a.get_sheet("Products").rows) == rows

    def test_empty_list_rejected(self, merger):
        with pytest.raises(ValueError):
            merger.merge_all([])

    def test_non_list_rejected(self, merger):
        with pytest.raises(InvalidInputError):
            merger.merge_all(exported("A"))

    def test_module_shortcut(self):
        assert merge_all([exported("A")]).sheet_names == ["Products", "Summary", "Settings"]


class TestMergeFiles:
    """Test cases for merging .xlsx bytes."""

    def test_merge_files(self):
        files = [write_workbook(exported("A", notes="a")), write_workbook(exported("B", notes="b"))]

        merged = read_workbook(WorkbookMerger().merge_files(files))

        assert merged.get_sheet("Notes").rows == [{"Note": "a"}]
        assert merged.get_sheet("Notes_1").rows == [{"Note": "b"}]
        assert merged.get_sheet("Settings").visibility == "hidden"
        assert [r.store for r in DataExporter().decode(merged)] == ["A", "B"]
