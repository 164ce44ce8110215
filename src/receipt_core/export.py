"""
Spreadsheet export and import for receipt data.
Encodes receipts into the Products/Summary/Settings workbook layout and
parses that layout back into receipts.
"""

import re
import logging
from datetime import datetime
from typing import List, Dict, Any, Optional, Tuple

from .config import AppConfig
from .identity import coerce_receipts, process_receipts
from .models import Receipt, Product, Sheet, Workbook, UserSettings, parse_number, SOURCE_EXCEL
from .settings import build_settings_sheet, parse_settings, SETTINGS_SHEET, SETTINGS_COLUMN_WIDTHS
from .workbook import read_workbook, write_workbook

logger = logging.getLogger(__name__)

PRODUCTS_SHEET = "Products"
SUMMARY_SHEET = "Summary"
RESERVED_SHEETS = (PRODUCTS_SHEET, SUMMARY_SHEET, SETTINGS_SHEET)

PRODUCT_COLUMNS = ["Item #", "Product Name", "Price", "Quantity", "Category", "Description", "Total"]
SUMMARY_COLUMNS = ["Field", "Value"]

COLUMN_WIDTHS = {
    PRODUCTS_SHEET: [8, 30, 12, 10, 15, 40, 12],
    SUMMARY_SHEET: [15, 20],
    SETTINGS_SHEET: SETTINGS_COLUMN_WIDTHS,
}

HEADER_MARKER = "==="
HEADER_PATTERN = re.compile(r'=== (.+?) - (.+?) ===')
TOTAL_LABEL = "TOTAL:"
SUBTOTAL_LABEL = "Subtotal:"
TAX_LABEL = "Tax:"
NOT_AVAILABLE = "N/A"


def _marker_row(label: str = "", total: str = "") -> Dict[str, Any]:
    row = {column: "" for column in PRODUCT_COLUMNS}
    row["Product Name"] = label
    row["Total"] = total
    return row


def _money(value: Optional[float]) -> str:
    return f"{value:.2f}" if value is not None else "0.00"


def _cell_text(value: Any) -> str:
    if value is None or value == "":
        return ""
    return str(value)


def _cell_number(value: Any) -> Optional[float]:
    """Parse a numeric cell; blank cells read as 0."""
    return parse_number(value if value not in (None, "") else "0")


class DataExporter:
    """Handles the spreadsheet layout of receipt collections."""

    def __init__(self, config: Optional[AppConfig] = None):
        """Initialize the exporter.

        Args:
            config: Application configuration; supplies the version written
                into the Settings sheet
        """
        self.config = config or AppConfig()
        self.logger = logger

    def build_products_rows(self, receipts: List[Receipt]) -> List[Dict[str, Any]]:
        """Products rows: per receipt a header, an id row, items and totals."""
        rows: List[Dict[str, Any]] = []
        item_counter = 1

        for receipt in receipts:
            rows.append(_marker_row(
                f"=== {receipt.store or 'Unknown Store'} - {receipt.date or 'Unknown Date'} ==="))

            id_text = f"ID: {receipt.id or NOT_AVAILABLE} | Source: {receipt.source or 'unknown'}"
            if receipt.duplicate_of:
                id_text += f" | DUPLICATE of {receipt.duplicate_of}"
            rows.append(_marker_row(id_text))

            for product in receipt.products:
                rows.append({
                    "Item #": item_counter,
                    "Product Name": product.name,
                    "Price": product.price,
                    "Quantity": product.effective_quantity,
                    "Category": product.category or NOT_AVAILABLE,
                    "Description": product.description or NOT_AVAILABLE,
                    "Total": f"{product.line_total:.2f}",
                })
                item_counter += 1

            rows.append(_marker_row(SUBTOTAL_LABEL, _money(receipt.subtotal)))
            if receipt.tax:
                rows.append(_marker_row(TAX_LABEL, _money(receipt.tax)))
            rows.append(_marker_row(TOTAL_LABEL, _money(receipt.total)))
            rows.append(_marker_row())

        return rows

    def build_summary_rows(self, receipts: List[Receipt]) -> List[Dict[str, Any]]:
        """Summary rows: overall totals followed by one block per receipt."""
        rows: List[Dict[str, Any]] = [
            {"Field": "Total Receipts", "Value": len(receipts)},
            {"Field": "Total Items", "Value": sum(r.item_count for r in receipts)},
            {"Field": "Grand Total", "Value": f"{sum(r.total for r in receipts):.2f}"},
            {"Field": "Total Tax", "Value": f"{sum(r.tax or 0 for r in receipts):.2f}"},
            {"Field": "Total Subtotal", "Value": f"{sum(r.subtotal or 0 for r in receipts):.2f}"},
        ]

        for receipt in receipts:
            rows.extend([
                {"Field": "", "Value": ""},
                {"Field": f"Store: {receipt.store or 'Unknown'}", "Value": ""},
                {"Field": f"Date: {receipt.date or 'Unknown'}", "Value": ""},
                {"Field": "Items", "Value": receipt.item_count},
                {"Field": "Subtotal", "Value": _money(receipt.subtotal)},
                {"Field": "Tax", "Value": _money(receipt.tax)},
                {"Field": "Total", "Value": _money(receipt.total)},
            ])

        return rows

    def encode(self, receipts: List[Receipt], settings: Optional[UserSettings] = None,
               existing: Optional[Workbook] = None) -> Workbook:
        """Encode receipts into a workbook.

        Args:
            receipts: Receipts to export, in output order
            settings: User settings for the hidden Settings sheet
            existing: Workbook to update; only the Products, Summary and
                Settings sheets are replaced, every other sheet is kept

        Returns:
            New Workbook; ``existing`` is not modified

        Raises:
            InvalidInputError: If ``receipts`` is not a list
        """
        receipts = coerce_receipts(receipts)
        workbook = existing.model_copy(deep=True) if existing is not None else Workbook()

        workbook.set_sheet(Sheet(name=PRODUCTS_SHEET, columns=list(PRODUCT_COLUMNS),
                                 rows=self.build_products_rows(receipts)))
        workbook.set_sheet(Sheet(name=SUMMARY_SHEET, columns=list(SUMMARY_COLUMNS),
                                 rows=self.build_summary_rows(receipts)))
        workbook.set_sheet(build_settings_sheet(settings, self.config))

        self.logger.info(f"Encoded {len(receipts)} receipts "
                         f"({'update' if existing is not None else 'new'} workbook)")
        return workbook

    def decode(self, workbook: Workbook) -> List[Receipt]:
        """Parse receipts from the first sheet of a workbook.

        The first sheet is used whatever its name. Header rows open (or reopen)
        a receipt keyed by store and date, footer rows fill in the totals and
        any other row with a numeric price becomes a product. Receipts without
        a TOTAL row get their subtotal and total recomputed from the items.

        Returns:
            Receipts with ids assigned and source set to ``excel``
        """
        sheet = workbook.first_sheet()
        if sheet is None:
            self.logger.warning("Workbook has no sheets; nothing to decode")
            return []

        receipt_map: Dict[str, Receipt] = {}
        current: Optional[Receipt] = None

        for row in sheet.rows:
            name = _cell_text(row.get("Product Name"))

            if HEADER_MARKER in name:
                match = HEADER_PATTERN.search(name)
                if match:
                    store = match.group(1).strip()
                    date = match.group(2).strip()
                    key = f"{store}-{date}"
                    if key not in receipt_map:
                        receipt_map[key] = Receipt(products=[], total=0, store=store, date=date,
                                                   subtotal=0, tax=0)
                    current = receipt_map[key]
                continue

            if name in (TOTAL_LABEL, SUBTOTAL_LABEL, TAX_LABEL):
                if current is not None:
                    amount = _cell_number(row.get("Total")) or 0.0
                    if name == TOTAL_LABEL:
                        current.total = amount
                    elif name == SUBTOTAL_LABEL:
                        current.subtotal = amount
                    else:
                        current.tax = amount
                continue

            if not name or "ID:" in name or "Source:" in name:
                continue

            price = _cell_number(row.get("Price"))
            if current is not None and price is not None:
                quantity = int(_cell_number(row.get("Quantity") or "1") or 0)
                current.products.append(Product(
                    name=name,
                    price=price,
                    quantity=quantity if quantity > 0 else 1,
                    category=_cell_text(row.get("Category")) or NOT_AVAILABLE,
                    description=_cell_text(row.get("Description")) or NOT_AVAILABLE,
                ))

        receipts = []
        for receipt in receipt_map.values():
            if receipt.total == 0:
                receipt.subtotal = sum(p.line_total for p in receipt.products)
                receipt.total = receipt.subtotal + (receipt.tax or 0)
            receipts.append(receipt)

        processed = process_receipts(receipts, SOURCE_EXCEL)
        self.logger.info(f"Decoded {len(processed)} receipts from sheet '{sheet.name}'")
        return processed

    def export_to_excel(self, receipts: List[Receipt], settings: Optional[UserSettings] = None,
                        existing: Optional[bytes] = None) -> bytes:
        """Encode receipts and serialize to .xlsx bytes.

        Args:
            receipts: Receipts to export
            settings: User settings for the hidden sheet
            existing: Bytes of a workbook to update in place

        Returns:
            .xlsx file content
        """
        try:
            base = read_workbook(existing) if existing is not None else None
            workbook = self.encode(receipts, settings, base)
            return write_workbook(workbook, COLUMN_WIDTHS)
        except Exception as e:
            self.logger.error(f"Excel export failed: {str(e)}")
            raise

    def import_from_excel(self, data: bytes) -> Tuple[List[Receipt], UserSettings]:
        """Read receipts and settings from .xlsx bytes."""
        workbook = read_workbook(data)
        return self.decode(workbook), parse_settings(workbook)

    def get_export_filename(self, receipt_count: int) -> str:
        """Generate the download name for an export.

        Args:
            receipt_count: Number of receipts in the export

        Returns:
            Generated filename
        """
        timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
        return f"receipts-{receipt_count}-receipts-{timestamp}.xlsx"


def encode_receipts(receipts: List[Receipt], settings: Optional[UserSettings] = None,
                    existing: Optional[Workbook] = None) -> Workbook:
    return DataExporter().encode(receipts, settings, existing)


def decode_receipts(workbook: Workbook) -> List[Receipt]:
    return DataExporter().decode(workbook)
