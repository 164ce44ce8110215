"""
Application configuration for the receipt scanner.
Holds the running version, version-check policy and default user settings.
Values can be overridden through environment variables.
"""

import os
import logging
from typing import List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

APP_VERSION = "0.3.0"

DEFAULT_CATEGORIES = [
    "food", "work", "home", "furniture", "electronics",
    "clothing", "health", "entertainment", "travel", "other",
]

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class VersionCheckConfig(BaseModel):
    """Policy for warning about spreadsheets written by another version."""

    enabled: bool = Field(True, description="Run the version check at all")
    warn_on_minor_diff: bool = Field(True, description="Warn for 1.0.x vs 1.1.x")
    error_on_major_diff: bool = Field(True, description="Block for 1.x vs 2.x")
    allow_override: bool = Field(True, description="Let the user proceed anyway")


class SettingsDefaults(BaseModel):
    custom_categories: List[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    currency: str = "Dollar"
    date_format: str = "MM/DD/YYYY"
    tax_rate: float = Field(0.0, ge=0, le=1)
    auto_categorize: bool = True
    include_descriptions: bool = True
    duplicate_detection: bool = True
    export_format: str = "detailed"


class AppConfig(BaseModel):
    """Top-level application configuration."""

    version: str = APP_VERSION
    version_check: VersionCheckConfig = Field(default_factory=VersionCheckConfig)
    defaults: SettingsDefaults = Field(default_factory=SettingsDefaults)
    storage_path: str = Field("receipt_cache.db", description="SQLite file backing the blob store")
    cache_key: str = "receipt-scanner-cache"
    settings_key: str = "receipt-scanner-settings"
    extractor: Optional[str] = Field(None, description="Import path 'module:Class' of the receipt extractor")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    logger.warning(f"Ignoring unrecognised boolean for {name}: {raw!r}")
    return default


def load_config(storage_path: Optional[str] = None) -> AppConfig:
    """Build the configuration from defaults and environment overrides.

    Recognised variables: RECEIPT_APP_VERSION, RECEIPT_DB_PATH,
    RECEIPT_VERSION_CHECK, RECEIPT_WARN_ON_MINOR_DIFF,
    RECEIPT_ERROR_ON_MAJOR_DIFF, RECEIPT_ALLOW_VERSION_OVERRIDE,
    RECEIPT_EXTRACTOR.
    """
    base = AppConfig()
    version_check = VersionCheckConfig(
        enabled=_env_bool("RECEIPT_VERSION_CHECK", base.version_check.enabled),
        warn_on_minor_diff=_env_bool("RECEIPT_WARN_ON_MINOR_DIFF", base.version_check.warn_on_minor_diff),
        error_on_major_diff=_env_bool("RECEIPT_ERROR_ON_MAJOR_DIFF", base.version_check.error_on_major_diff),
        allow_override=_env_bool("RECEIPT_ALLOW_VERSION_OVERRIDE", base.version_check.allow_override),
    )
    config = base.model_copy(update={
        "version": os.environ.get("RECEIPT_APP_VERSION", base.version),
        "storage_path": storage_path or os.environ.get("RECEIPT_DB_PATH", base.storage_path),
        "version_check": version_check,
        "extractor": os.environ.get("RECEIPT_EXTRACTOR", base.extractor),
    })
    logger.debug(f"Loaded configuration for version {config.version}")
    return config
