"""
Merging of several exported workbooks into one.
Receipt sheets are combined; every other sheet is carried over, renamed on
name collisions so nothing is lost.
"""

import logging
from typing import Any, Dict, List

from .export import PRODUCTS_SHEET, SUMMARY_SHEET, RESERVED_SHEETS, COLUMN_WIDTHS
from .models import Sheet, Workbook, InvalidInputError
from .settings import SETTINGS_SHEET
from .workbook import read_workbook, write_workbook

logger = logging.getLogger(__name__)

MERGED_FILENAME = "merged-receipts.xlsx"
MAX_SHEET_NAME = 31


class _Accumulator:
    """Rows and column order gathered for one reserved sheet."""

    def __init__(self):
        self.seen = False
        self.columns: List[str] = []
        self.rows: List[Dict[str, Any]] = []

    def add(self, sheet: Sheet, replace: bool = False) -> None:
        if replace:
            self.columns, self.rows = [], []
        self.seen = True
        for column in sheet.columns:
            if column not in self.columns:
                self.columns.append(column)
        self.rows.extend(dict(row) for row in sheet.rows)


def _free_name(workbook: Workbook, name: str) -> str:
    """First unused name among ``name``, ``name_1``, ``name_2``... within Excel's title limit."""
    candidate = name
    counter = 1
    while candidate in workbook.sheet_names:
        suffix = f"_{counter}"
        candidate = name[:MAX_SHEET_NAME - len(suffix)] + suffix
        counter += 1
    return candidate


class WorkbookMerger:
    """Combines previously exported workbooks."""

    def __init__(self):
        self.logger = logger

    def merge_all(self, workbooks: List[Workbook]) -> Workbook:
        """Merge workbooks into a single one.

        The first workbook is the base. Products and Summary rows from every
        input are concatenated in input order; the Settings sheet of the last
        input that has one wins and stays hidden. Other sheets are copied from
        each later input, gaining a ``_1``, ``_2``... suffix when the name is
        already taken.

        Raises:
            InvalidInputError: If ``workbooks`` is not a list
            ValueError: If ``workbooks`` is empty
        """
        if not isinstance(workbooks, (list, tuple)):
            raise InvalidInputError(f"Expected a list of workbooks, got {type(workbooks).__name__}")
        if not workbooks:
            raise ValueError("No workbooks provided for merging")

        merged = workbooks[0].model_copy(deep=True)
        self.logger.info(f"Merging {len(workbooks)} workbooks; base has {len(merged.sheets)} sheets")

        products = _Accumulator()
        summary = _Accumulator()
        settings = _Accumulator()

        for index, workbook in enumerate(workbooks):
            for name, accumulator in ((PRODUCTS_SHEET, products), (SUMMARY_SHEET, summary)):
                sheet = workbook.get_sheet(name)
                if sheet is not None:
                    accumulator.add(sheet)
            settings_sheet = workbook.get_sheet(SETTINGS_SHEET)
            if settings_sheet is not None:
                settings.add(settings_sheet, replace=True)

            # The base already holds its own foreign sheets
            if index == 0:
                continue

            for sheet in workbook.sheets:
                if sheet.name in RESERVED_SHEETS:
                    continue
                target = _free_name(merged, sheet.name)
                merged.sheets.append(sheet.model_copy(deep=True, update={"name": target}))
                if target == sheet.name:
                    self.logger.info(f"Preserved sheet '{sheet.name}' from file {index + 1}")
                else:
                    self.logger.info(f"Preserved sheet '{sheet.name}' from file {index + 1} as '{target}'")

        for name, accumulator in ((PRODUCTS_SHEET, products), (SUMMARY_SHEET, summary), (SETTINGS_SHEET, settings)):
            if not accumulator.seen:
                continue
            merged.set_sheet(Sheet(
                name=name,
                columns=accumulator.columns,
                rows=accumulator.rows,
                visibility="hidden" if name == SETTINGS_SHEET else "visible",
            ))

        self.logger.info(f"Merged workbook has {len(merged.sheets)} sheets: {', '.join(merged.sheet_names)}")
        return merged

    def merge_files(self, files: List[bytes]) -> bytes:
        """Merge .xlsx files given as bytes and return the merged file."""
        if not isinstance(files, (list, tuple)):
            raise InvalidInputError(f"Expected a list of files, got {type(files).__name__}")
        try:
            merged = self.merge_all([read_workbook(data) for data in files])
            return write_workbook(merged, COLUMN_WIDTHS)
        except Exception as e:
            self.logger.error(f"Workbook merge failed: {str(e)}")
            raise


def merge_all(workbooks: List[Workbook]) -> Workbook:
    return WorkbookMerger().merge_all(workbooks)
