"""
User settings serialization.
Builds and parses the hidden Settings sheet that travels inside exported
spreadsheets.
"""

import re
import logging
from typing import Any, Dict, List, Optional

from .config import AppConfig
from .models import UserSettings, Sheet, Workbook, parse_number

logger = logging.getLogger(__name__)

SETTINGS_SHEET = "Settings"
SETTINGS_COLUMNS = ["Setting", "Value", "Description"]
SETTINGS_COLUMN_WIDTHS = [25, 50, 60]

_WHITESPACE = re.compile(r'\s+')

# Normalised setting name -> UserSettings field
_SETTING_FIELDS = {
    "customcategories": "custom_categories",
    "defaultcurrency": "default_currency",
    "dateformat": "date_format",
    "taxrate": "tax_rate",
    "auto-categorize": "auto_categorize",
    "autocategorize": "auto_categorize",
    "includedescriptions": "include_descriptions",
    "duplicatedetection": "duplicate_detection",
    "exportformat": "export_format",
    "receiptscannerversion": "version",
    "version": "version",
}
_BOOLEAN_FIELDS = {"auto_categorize", "include_descriptions", "duplicate_detection"}


def default_settings(config: Optional[AppConfig] = None) -> UserSettings:
    """Settings with every field filled from the configuration defaults."""
    config = config or AppConfig()
    defaults = config.defaults
    return UserSettings(
        custom_categories=list(defaults.custom_categories),
        default_currency=defaults.currency,
        date_format=defaults.date_format,
        tax_rate=defaults.tax_rate,
        auto_categorize=defaults.auto_categorize,
        include_descriptions=defaults.include_descriptions,
        duplicate_detection=defaults.duplicate_detection,
        export_format=defaults.export_format,
        version=config.version,
    )


def merge_settings(base: UserSettings, override: UserSettings) -> UserSettings:
    """Overlay the fields that are set in ``override`` onto ``base``."""
    return base.model_copy(update=override.model_dump(exclude_none=True))


def _bool_text(value: bool) -> str:
    return "true" if value else "false"


def settings_rows(settings: Optional[UserSettings], config: Optional[AppConfig] = None) -> List[Dict[str, Any]]:
    """Setting/Value/Description rows for the Settings sheet.

    Missing fields fall back to defaults. The version row always carries the
    running application version, not the one stored in ``settings``.
    """
    config = config or AppConfig()
    s = merge_settings(default_settings(config), settings or UserSettings())
    return [
        {"Setting": "Custom Categories",
         "Value": ", ".join(s.custom_categories or config.defaults.custom_categories),
         "Description": "Comma-separated list of custom categories for AI to use when analyzing receipts"},
        {"Setting": "Default Currency", "Value": s.default_currency,
         "Description": "Default currency symbol for price formatting"},
        {"Setting": "Date Format", "Value": s.date_format,
         "Description": "Preferred date format for receipt dates"},
        {"Setting": "Tax Rate", "Value": f"{(s.tax_rate or 0) * 100:.2f}%",
         "Description": "Default tax rate (as percentage)"},
        {"Setting": "Auto-categorize", "Value": _bool_text(s.auto_categorize),
         "Description": "Whether to automatically categorize products using AI"},
        {"Setting": "Include Descriptions", "Value": _bool_text(s.include_descriptions),
         "Description": "Whether to generate product descriptions using AI"},
        {"Setting": "Duplicate Detection", "Value": _bool_text(s.duplicate_detection),
         "Description": "Whether to detect and mark duplicate receipts"},
        {"Setting": "Export Format", "Value": s.export_format,
         "Description": "Export format: detailed, summary, or minimal"},
        {"Setting": "Receipt Scanner Version", "Value": config.version,
         "Description": "Version of the receipt scanner application"},
    ]


def build_settings_sheet(settings: Optional[UserSettings], config: Optional[AppConfig] = None) -> Sheet:
    """The hidden Settings sheet."""
    return Sheet(name=SETTINGS_SHEET, columns=list(SETTINGS_COLUMNS),
                 rows=settings_rows(settings, config), visibility="hidden")


def export_settings_workbook(settings: Optional[UserSettings], config: Optional[AppConfig] = None) -> Workbook:
    """Workbook holding only the settings.

    A visible cover sheet is included because a workbook cannot consist of
    hidden sheets alone.
    """
    config = config or AppConfig()
    cover = Sheet.from_rows("Info", [
        {"Receipt Scanner": f"Settings exported by receipt scanner v{config.version}"},
        {"Receipt Scanner": "Import this file to restore your preferences."},
    ])
    return Workbook(sheets=[cover, build_settings_sheet(settings, config)])


def _parse_tax_rate(value: str) -> Optional[float]:
    rate = parse_number(value)
    if rate is None:
        return None
    # Exports write the rate as a percentage, e.g. "7.50%"
    if value.endswith("%"):
        rate = rate / 100
    if not 0 <= rate <= 1:
        return None
    return rate


def _parse_value(field: str, value: str) -> Any:
    if field == "custom_categories":
        return [cat.strip() for cat in value.split(",") if cat.strip()]
    if field in _BOOLEAN_FIELDS:
        return value.lower() == "true"
    if field == "tax_rate":
        return _parse_tax_rate(value)
    return value


def parse_settings(workbook: Workbook) -> UserSettings:
    """Read UserSettings from the workbook's Settings sheet.

    The sheet is found by exact name and read whatever its visibility. Setting
    names are matched case- and whitespace-insensitively; unknown names and
    unparseable values are ignored. A workbook without a Settings sheet yields
    empty settings.
    """
    sheet = workbook.get_sheet(SETTINGS_SHEET)
    if sheet is None:
        logger.info("No Settings sheet found in workbook")
        return UserSettings()
    if sheet.visibility != "visible":
        logger.debug(f"Settings sheet is {sheet.visibility}")

    fields: Dict[str, Any] = {}
    for row in sheet.rows:
        name = _WHITESPACE.sub("", str(row.get("Setting") or "")).lower()
        raw = row.get("Value")
        value = str(raw).strip() if raw is not None else ""
        if not name or not value:
            continue
        field = _SETTING_FIELDS.get(name)
        if field is None:
            continue
        parsed = _parse_value(field, value)
        if parsed is None:
            logger.warning(f"Ignoring unparseable value for setting '{row.get('Setting')}': {value!r}")
            continue
        fields[field] = parsed

    settings = UserSettings(**fields)

    logger.info(f"Parsed {len(fields)} settings from workbook")
    return settings
