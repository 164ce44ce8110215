"""
Receipt identity and similarity.
Derives the coarse fingerprint used as a receipt's id and decides whether two
receipts describe the same purchase.
"""

import re
import math
import logging
from typing import List, Any, Iterable

from .models import Receipt, InvalidInputError, SOURCE_ANALYZED

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r'[^a-z0-9]')
_NON_DIGIT = re.compile(r'[^0-9]')


def _to_cents(amount: float) -> int:
    # Half-up, so 0.125 -> 13 regardless of float banker's rounding
    return int(math.floor(amount * 100 + 0.5))


def generate_receipt_id(receipt: Receipt) -> str:
    """Build the fingerprint ``<store>-<date>-<total cents>-<item count>``.

    The store is lowercased and stripped to ASCII letters and digits, the date
    keeps only its digits; either falls back to ``unknown`` when empty.
    """
    store = _NON_ALNUM.sub('', (receipt.store or '').lower()) or 'unknown'
    date = _NON_DIGIT.sub('', receipt.date or '') or 'unknown'
    total = _to_cents(receipt.total or 0)
    return f"{store}-{date}-{total}-{len(receipt.products)}"


def assign_id(receipt: Receipt) -> Receipt:
    """Return a copy carrying an id; an existing id is never replaced."""
    if receipt.id:
        return receipt.model_copy()
    return receipt.model_copy(update={"id": generate_receipt_id(receipt)})


def coerce_receipts(receipts: Any) -> List[Receipt]:
    """Validate a list of receipts or receipt-shaped dicts.

    Raises:
        InvalidInputError: If ``receipts`` is not a list or tuple
    """
    if not isinstance(receipts, (list, tuple)):
        raise InvalidInputError(f"Expected a list of receipts, got {type(receipts).__name__}")
    return [r if isinstance(r, Receipt) else Receipt.model_validate(r) for r in receipts]


def process_receipts(receipts: Any, source: str = SOURCE_ANALYZED) -> List[Receipt]:
    """Assign ids to receipts and tag those without a source.

    Args:
        receipts: Receipts (or dicts) to process
        source: Provenance used for receipts that carry none

    Returns:
        New receipt objects; the inputs are left untouched
    """
    processed = []
    for receipt in coerce_receipts(receipts):
        updated = assign_id(receipt)
        if not updated.source:
            updated.source = source
        processed.append(updated)
    return processed


def are_receipts_similar(first: Receipt, second: Receipt) -> bool:
    """Decide whether two receipts are likely the same purchase.

    Matching fingerprints are enough. Otherwise store (case-insensitive) and
    date must both be present and equal, totals must be within one cent and
    item counts must match.
    """
    if generate_receipt_id(first) == generate_receipt_id(second):
        return True

    store_match = bool(first.store and second.store and
                       first.store.lower() == second.store.lower())
    date_match = bool(first.date and second.date and first.date == second.date)
    total_match = abs((first.total or 0) - (second.total or 0)) < 0.01
    count_match = len(first.products) == len(second.products)

    return store_match and date_match and total_match and count_match


def find_similar(probe: Receipt, receipts: Iterable[Receipt]) -> List[Receipt]:
    """Return the receipts that look like the same purchase as ``probe``."""
    matches = [r for r in receipts if r is not probe and are_receipts_similar(probe, r)]
    logger.debug(f"Found {len(matches)} receipts similar to {generate_receipt_id(probe)}")
    return matches
