"""
Unit tests for the .xlsx codec.
"""

import io

import pytest
from openpyxl import load_workbook

from receipt_core.models import Sheet, Workbook
from receipt_core.workbook import (
    read_workbook, write_workbook, get_sheet_visibility, is_sheet_visible, WorkbookReadError
)


class TestWorkbookCodec:
    """Test cases for read_workbook and write_workbook."""

    @pytest.fixture
    def sample_workbook(self):
        return Workbook(sheets=[
            Sheet.from_rows("Data", [{"Name": "Milk", "Price": 3.5}, {"Name": "Bread", "Price": 2}]),
            Sheet.from_rows("Hidden", [{"Key": "a"}], visibility="hidden"),
            Sheet.from_rows("Secret", [{"Key": "b"}], visibility="very-hidden"),
        ])

    def test_round_trip_keeps_order_and_rows(self, sample_workbook):
        restored = read_workbook(write_workbook(sample_workbook))

        assert restored.sheet_names == ["Data", "Hidden", "Secret"]
        data = restored.get_sheet("Data")
        assert data.columns == ["Name", "Price"]
        assert data.rows[0]["Name"] == "Milk"
        assert data.rows[0]["Price"] == 3.5

    def test_round_trip_keeps_visibility(self, sample_workbook):
        restored = read_workbook(write_workbook(sample_workbook))

        assert get_sheet_visibility(restored, "Data") == "visible"
        assert get_sheet_visibility(restored, "Hidden") == "hidden"
        assert get_sheet_visibility(restored, "Secret") == "very-hidden"

    def test_blank_cells_read_as_empty_strings(self):
        workbook = Workbook(sheets=[Sheet(name="S", columns=["A", "B"], rows=[{"A": "x"}])])

        restored = read_workbook(write_workbook(workbook))

        assert restored.get_sheet("S").rows == [{"A": "x", "B": ""}]

    def test_text_starting_with_equals_stays_text(self):
        workbook = Workbook(sheets=[Sheet.from_rows("S", [
            {"Name": "=== Costco - 2024-01-15 ==="},
            {"Name": "=SUM(A1:A2)"},
        ])])

        data = write_workbook(workbook)

        restored = read_workbook(data)
        assert restored.get_sheet("S").rows == [
            {"Name": "=== Costco - 2024-01-15 ==="},
            {"Name": "=SUM(A1:A2)"},
        ]
        cell = load_workbook(io.BytesIO(data))["S"]["A2"]
        assert cell.data_type == "s"

    def test_all_hidden_rejected(self):
        workbook = Workbook(sheets=[Sheet(name="S", visibility="hidden")])
        with pytest.raises(ValueError):
            write_workbook(workbook)

    def test_unreadable_bytes(self):
        with pytest.raises(WorkbookReadError):
            read_workbook(b"this is not a spreadsheet")


class TestVisibilityHelpers:
    """Test cases for visibility lookups."""

    def test_missing_sheet(self):
        workbook = Workbook()
        assert get_sheet_visibility(workbook, "Nope") == "visible"
        assert not is_sheet_visible(workbook, "Nope")

    def test_hidden_sheet(self):
        workbook = Workbook(sheets=[Sheet(name="S", visibility="hidden"), Sheet(name="V")])
        assert not is_sheet_visible(workbook, "S")
        assert is_sheet_visible(workbook, "V")
