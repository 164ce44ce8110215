"""
Spreadsheet codec for the receipt scanner.
Reads and writes .xlsx bytes into the in-memory Workbook model using pandas
for the tabular data and openpyxl for sheet visibility and column widths.
"""

import io
import logging
import zipfile
from typing import Any, Dict, List, Optional

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from .models import Sheet, Workbook, SheetVisibility

logger = logging.getLogger(__name__)

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# openpyxl spells the third state differently
_TO_OPENPYXL_STATE = {"visible": "visible", "hidden": "hidden", "very-hidden": "veryHidden"}
_FROM_OPENPYXL_STATE = {v: k for k, v in _TO_OPENPYXL_STATE.items()}


class WorkbookReadError(ValueError):
    """Raised when bytes cannot be opened as a spreadsheet."""


def _plain(value: Any) -> Any:
    """Turn numpy scalars into plain Python values."""
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        try:
            return value.item()
        except (ValueError, TypeError):
            return value
    return value


def _frame_to_rows(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    columns = [str(c) for c in frame.columns]
    rows = []
    for values in frame.itertuples(index=False, name=None):
        rows.append({col: _plain(val) for col, val in zip(columns, values)})
    return rows


def _store_text_literally(worksheet) -> None:
    """Keep strings such as receipt headers ("=== Shop - date ===") from being written as formulas."""
    for row in worksheet.iter_rows():
        for cell in row:
            if cell.data_type == "f" and isinstance(cell.value, str):
                cell.data_type = "s"


def read_workbook(data: bytes) -> Workbook:
    """Read .xlsx bytes into a Workbook.

    Hidden sheets are read like any other; their state is kept on the Sheet.

    Raises:
        WorkbookReadError: If the bytes are not a readable spreadsheet
    """
    try:
        book = load_workbook(io.BytesIO(data), data_only=True)
        frames = pd.read_excel(io.BytesIO(data), sheet_name=None, dtype=object,
                               na_filter=False, engine="openpyxl")
    except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as e:
        logger.error(f"Failed to read workbook: {str(e)}")
        raise WorkbookReadError(f"Could not read spreadsheet: {str(e)}") from e

    sheets = []
    for name, frame in frames.items():
        state = book[name].sheet_state if name in book.sheetnames else "visible"
        visibility = _FROM_OPENPYXL_STATE.get(state, "visible")
        if visibility != "visible":
            logger.debug(f"Sheet '{name}' is {visibility}")
        sheets.append(Sheet(
            name=name,
            columns=[str(c) for c in frame.columns],
            rows=_frame_to_rows(frame),
            visibility=visibility,
        ))

    logger.info(f"Read workbook with {len(sheets)} sheets: {', '.join(s.name for s in sheets)}")
    return Workbook(sheets=sheets)


def write_workbook(workbook: Workbook, column_widths: Optional[Dict[str, List[int]]] = None) -> bytes:
    """Write a Workbook to .xlsx bytes, applying each sheet's visibility.

    Args:
        workbook: Workbook to serialize
        column_widths: Optional character widths per sheet name

    Raises:
        ValueError: If no sheet is visible; spreadsheet apps refuse such files
    """
    if not any(sheet.visibility == "visible" for sheet in workbook.sheets):
        raise ValueError("At least one sheet must be visible")

    column_widths = column_widths or {}
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for sheet in workbook.sheets:
            frame = pd.DataFrame(sheet.rows, columns=sheet.columns)
            frame.to_excel(writer, sheet_name=sheet.name, index=False)
            worksheet = writer.sheets[sheet.name]
            _store_text_literally(worksheet)
            worksheet.sheet_state = _TO_OPENPYXL_STATE[sheet.visibility]
            for index, width in enumerate(column_widths.get(sheet.name, []), start=1):
                worksheet.column_dimensions[get_column_letter(index)].width = width

    data = buffer.getvalue()
    logger.info(f"Wrote workbook with {len(workbook.sheets)} sheets ({len(data)} bytes)")
    return data


def get_sheet_visibility(workbook: Workbook, sheet_name: str) -> SheetVisibility:
    """Visibility of a sheet; missing sheets report as visible."""
    sheet = workbook.get_sheet(sheet_name)
    return sheet.visibility if sheet else "visible"


def is_sheet_visible(workbook: Workbook, sheet_name: str) -> bool:
    """True only for sheets that exist and are not hidden."""
    sheet = workbook.get_sheet(sheet_name)
    return sheet is not None and sheet.visibility == "visible"
