"""
User interface components for the receipt scanner.
"""

from .components import (
    setup_sidebar,
    display_upload_section,
    display_receipts,
    display_duplicates,
    display_export_section,
    display_merge_section
)

__all__ = [
    'setup_sidebar',
    'display_upload_section',
    'display_receipts',
    'display_duplicates',
    'display_export_section',
    'display_merge_section'
]
