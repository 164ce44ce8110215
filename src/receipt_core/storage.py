"""
Persistent cache for receipts and settings.
A small SQLite-backed key/value blob store plus a typed wrapper that keeps
the JSON array of known receipts and the serialized user settings.
"""

import json
import sqlite3
import logging
from contextlib import contextmanager
from typing import List, Optional, Tuple

from pydantic import ValidationError

from .config import AppConfig
from .models import Receipt, UserSettings, SOURCE_EXCEL

logger = logging.getLogger(__name__)


class BlobStore:
    """Key/value store of text blobs kept in SQLite."""

    def __init__(self, db_path: str = "receipt_cache.db"):
        """Initialize the blob store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.logger = logger

    @contextmanager
    def get_connection(self):
        """Context manager for database connections with automatic cleanup."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            yield conn
        except Exception as e:
            if conn:
                conn.rollback()
            self.logger.error(f"Database error: {str(e)}")
            raise
        finally:
            if conn:
                conn.close()

    def initialize(self) -> None:
        """Create the blob table if it does not exist."""
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS blobs (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()
            self.logger.info(f"Blob store ready at {self.db_path}")

    def get(self, key: str) -> Optional[str]:
        with self.get_connection() as conn:
            row = conn.execute("SELECT value FROM blobs WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else None

    def put(self, key: str, value: str) -> None:
        with self.get_connection() as conn:
            conn.execute("""
                INSERT INTO blobs (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = CURRENT_TIMESTAMP
            """, (key, value))
            conn.commit()

    def delete(self, key: str) -> bool:
        """Remove a blob; returns False when the key was absent."""
        with self.get_connection() as conn:
            cursor = conn.execute("DELETE FROM blobs WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0


class ReceiptCache:
    """Receipts and settings persisted in a blob store under fixed keys."""

    def __init__(self, store: BlobStore, config: Optional[AppConfig] = None):
        self.store = store
        self.config = config or AppConfig()
        self.logger = logger

    def load_receipts(self) -> List[Receipt]:
        """All cached receipts; a missing or corrupt blob reads as empty."""
        raw = self.store.get(self.config.cache_key)
        if not raw:
            return []
        try:
            payload = json.loads(raw)
            if not isinstance(payload, list):
                raise ValueError(f"expected a JSON array, got {type(payload).__name__}")
            receipts = [Receipt.model_validate(item) for item in payload]
        except (ValueError, ValidationError) as e:
            self.logger.error(f"Error loading cached receipts: {str(e)}")
            return []
        self.logger.info(f"Loaded {len(receipts)} cached receipts")
        return receipts

    def load_split(self) -> Tuple[List[Receipt], List[Receipt]]:
        """Cached receipts split into (spreadsheet-sourced, everything else)."""
        receipts = self.load_receipts()
        spreadsheet = [r for r in receipts if r.source == SOURCE_EXCEL]
        others = [r for r in receipts if r.source != SOURCE_EXCEL]
        return spreadsheet, others

    def save_receipts(self, receipts: List[Receipt]) -> None:
        payload = json.dumps([r.to_cache_dict() for r in receipts], ensure_ascii=False)
        self.store.put(self.config.cache_key, payload)
        self.logger.debug(f"Cached {len(receipts)} receipts")

    def clear_receipts(self) -> None:
        self.store.delete(self.config.cache_key)
        self.logger.info("Cleared receipt cache")

    def load_settings(self) -> UserSettings:
        raw = self.store.get(self.config.settings_key)
        if not raw:
            return UserSettings()
        try:
            return UserSettings.model_validate_json(raw)
        except ValidationError as e:
            self.logger.error(f"Error loading cached settings: {str(e)}")
            return UserSettings()

    def save_settings(self, settings: UserSettings) -> None:
        self.store.put(self.config.settings_key,
                       settings.model_dump_json(by_alias=True, exclude_none=True))
