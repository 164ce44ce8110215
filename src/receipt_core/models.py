"""
Data models using Pydantic for the receipt scanner.
Validates loosely-shaped records coming from the AI extractor, spreadsheet
imports and the browser-style cache before they reach the core logic.
"""

import re
import math
from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator

SOURCE_ANALYZED = "analyzed"
SOURCE_EXCEL = "excel"
SOURCE_CACHED = "cached"

# Lower value wins when the same receipt arrives from several places
SOURCE_PRIORITY = {SOURCE_EXCEL: 0, SOURCE_CACHED: 1, SOURCE_ANALYZED: 2}

SheetVisibility = Literal["visible", "hidden", "very-hidden"]
Severity = Literal["same", "patch", "minor", "major"]

_NUMBER_PREFIX = re.compile(r'^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')


class InvalidInputError(TypeError):
    """Raised when a caller hands over something other than a list of records."""


def parse_number(value: Any) -> Optional[float]:
    """Parse the leading decimal number of a value, like a lenient spreadsheet reader.

    Returns None when no finite number can be read. Booleans are not numbers here.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    else:
        match = _NUMBER_PREFIX.match(str(value))
        if not match:
            return None
        number = float(match.group(0))
    return number if math.isfinite(number) else None


class Product(BaseModel):
    """A single line item on a receipt."""

    name: str = Field("", description="Product name as printed")
    price: float = Field(0.0, description="Unit price in currency units")
    quantity: Optional[int] = Field(None, description="Positive item count, 1 when absent")
    category: Optional[str] = Field(None, description="Product category")
    description: Optional[str] = Field(None, description="Short product description")

    @field_validator('name', mode='before')
    @classmethod
    def validate_name(cls, v):
        """Coerce missing names to an empty string."""
        if v is None:
            return ""
        return str(v).strip()

    @field_validator('price', mode='before')
    @classmethod
    def validate_price(cls, v):
        """Accept numeric strings; anything unreadable becomes 0."""
        parsed = parse_number(v)
        return parsed if parsed is not None else 0.0

    @field_validator('quantity', mode='before')
    @classmethod
    def validate_quantity(cls, v):
        """Quantities must be positive integers; otherwise treated as absent."""
        parsed = parse_number(v)
        if parsed is None:
            return None
        quantity = int(parsed)
        return quantity if quantity > 0 else None

    @field_validator('category', 'description', mode='before')
    @classmethod
    def validate_text(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @property
    def effective_quantity(self) -> int:
        return self.quantity or 1

    @property
    def line_total(self) -> float:
        return self.price * self.effective_quantity


class Receipt(BaseModel):
    """Main receipt model shared by every source."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "store": "Trader Joe's",
                "date": "01/15/2024",
                "total": 12.48,
                "tax": 0.48,
                "subtotal": 12.00,
                "products": [
                    {"name": "Bananas", "price": 0.29, "quantity": 4, "category": "food"},
                    {"name": "Coffee", "price": 10.84}
                ]
            }
        }
    )

    id: Optional[str] = Field(None, description="Fingerprint used as the dedup key")
    products: List[Product] = Field(default_factory=list, description="Line items in source order")
    total: float = Field(0.0, description="Receipt total")
    subtotal: Optional[float] = Field(None, description="Amount before tax")
    tax: Optional[float] = Field(None, description="Tax amount")
    store: Optional[str] = Field(None, description="Store or merchant name")
    date: Optional[str] = Field(None, description="Free-form date string")
    source: Optional[str] = Field(None, description="Provenance: analyzed, excel or cached")
    duplicate_of: Optional[str] = Field(None, alias="duplicateOf",
                                        description="Id of the receipt this one duplicates")

    @field_validator('products', mode='before')
    @classmethod
    def validate_products(cls, v):
        if v is None:
            return []
        return v

    @field_validator('total', mode='before')
    @classmethod
    def validate_total(cls, v):
        parsed = parse_number(v)
        return parsed if parsed is not None else 0.0

    @field_validator('subtotal', 'tax', mode='before')
    @classmethod
    def validate_optional_amount(cls, v):
        return parse_number(v)

    @field_validator('id', 'store', 'date', 'source', 'duplicate_of', mode='before')
    @classmethod
    def validate_optional_text(cls, v):
        """Blank strings are treated as missing values."""
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @property
    def item_count(self) -> int:
        return len(self.products)

    def to_cache_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used by the cache blob."""
        return self.model_dump(by_alias=True, exclude_none=True)


class UserSettings(BaseModel):
    """User preferences carried in the hidden Settings sheet.

    Every field is optional so that a partially parsed sheet can be represented;
    see ``settings.default_settings`` for the filled-in defaults.
    """

    custom_categories: Optional[List[str]] = Field(None, alias="customCategories")
    default_currency: Optional[str] = Field(None, alias="defaultCurrency")
    date_format: Optional[str] = Field(None, alias="dateFormat")
    tax_rate: Optional[float] = Field(None, ge=0, le=1, alias="taxRate")
    auto_categorize: Optional[bool] = Field(None, alias="autoCategorize")
    include_descriptions: Optional[bool] = Field(None, alias="includeDescriptions")
    duplicate_detection: Optional[bool] = Field(None, alias="duplicateDetection")
    export_format: Optional[str] = Field(None, alias="exportFormat")
    version: Optional[str] = Field(None)

    model_config = ConfigDict(populate_by_name=True)

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class ReconciliationResult(BaseModel):
    """Outcome of reconciling receipts from every source."""

    unique: List[Receipt] = Field(default_factory=list, description="One receipt per id")
    duplicates: List[Receipt] = Field(default_factory=list, description="Losers, tagged with duplicate_of")


class VersionCheck(BaseModel):
    """Verdict of comparing the running version with a file's version."""

    compatible: bool
    severity: Severity
    message: str


class TokenUsage(BaseModel):
    prompt_tokens: int = Field(0, ge=0, alias="promptTokens")
    completion_tokens: int = Field(0, ge=0, alias="completionTokens")
    total_tokens: int = Field(0, ge=0, alias="totalTokens")

    model_config = ConfigDict(populate_by_name=True)


class ExtractionResult(BaseModel):
    """Receipt returned by the AI extractor together with its token usage."""

    receipt: Receipt
    token_usage: TokenUsage = Field(default_factory=TokenUsage)


class Sheet(BaseModel):
    """One worksheet: ordered columns and flat string-keyed rows."""

    name: str
    columns: List[str] = Field(default_factory=list)
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    visibility: SheetVisibility = "visible"

    @classmethod
    def from_rows(cls, name: str, rows: List[Dict[str, Any]],
                  visibility: SheetVisibility = "visible") -> "Sheet":
        """Build a sheet whose columns are the union of row keys in first-seen order."""
        columns: List[str] = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(key)
        return cls(name=name, columns=columns, rows=[dict(r) for r in rows], visibility=visibility)


class Workbook(BaseModel):
    """In-memory spreadsheet: named sheets in display order."""

    sheets: List[Sheet] = Field(default_factory=list)

    @property
    def sheet_names(self) -> List[str]:
        return [sheet.name for sheet in self.sheets]

    def get_sheet(self, name: str) -> Optional[Sheet]:
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        return None

    def first_sheet(self) -> Optional[Sheet]:
        return self.sheets[0] if self.sheets else None

    def set_sheet(self, sheet: Sheet) -> None:
        """Replace a sheet of the same name in place, or append it."""
        for index, existing in enumerate(self.sheets):
            if existing.name == sheet.name:
                self.sheets[index] = sheet
                return
        self.sheets.append(sheet)
