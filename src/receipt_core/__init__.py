"""
Core functionality for the receipt scanner: identity, reconciliation and the
spreadsheet round trip.
"""

from .config import AppConfig, load_config, APP_VERSION
from .models import Product, Receipt, UserSettings, Workbook, Sheet, InvalidInputError
from .identity import generate_receipt_id, assign_id, process_receipts, are_receipts_similar
from .reconcile import ReceiptSources, SourceReconciler, reconcile
from .export import DataExporter, encode_receipts, decode_receipts
from .merge import WorkbookMerger, merge_all
from .settings import parse_settings, default_settings
from .versioning import compare_versions, should_warn
from .storage import BlobStore, ReceiptCache
from .session import ReceiptSession

__version__ = APP_VERSION

__all__ = [
    'AppConfig',
    'load_config',
    'Product',
    'Receipt',
    'UserSettings',
    'Workbook',
    'Sheet',
    'InvalidInputError',
    'generate_receipt_id',
    'assign_id',
    'process_receipts',
    'are_receipts_similar',
    'ReceiptSources',
    'SourceReconciler',
    'reconcile',
    'DataExporter',
    'encode_receipts',
    'decode_receipts',
    'WorkbookMerger',
    'merge_all',
    'parse_settings',
    'default_settings',
    'compare_versions',
    'should_warn',
    'BlobStore',
    'ReceiptCache',
    'ReceiptSession',
]
