"""
Multi-source reconciliation for receipts.
Combines spreadsheet imports, cached history and fresh AI results, groups them
by fingerprint and elects one winner per group by source priority.
"""

import logging
from typing import Dict, List, Optional, Any

from pydantic import BaseModel, Field

from .models import (
    Receipt, ReconciliationResult, SOURCE_PRIORITY,
    SOURCE_EXCEL, SOURCE_CACHED, SOURCE_ANALYZED,
)
from .identity import process_receipts

logger = logging.getLogger(__name__)

_UNKNOWN_SOURCE_RANK = 3


def source_rank(receipt: Receipt) -> int:
    """Priority of a receipt's source; lower wins."""
    return SOURCE_PRIORITY.get(receipt.source or "", _UNKNOWN_SOURCE_RANK)


class ReceiptSources(BaseModel):
    """Snapshot of every provenance bucket, in combine order."""

    spreadsheet: List[Receipt] = Field(default_factory=list, description="Imported from Excel")
    cached: List[Receipt] = Field(default_factory=list, description="Loaded from the cache")
    batch: List[Receipt] = Field(default_factory=list, description="Batch-analyzed images")
    current: Optional[Receipt] = Field(None, description="Most recently analyzed receipt")

    def combined(self) -> List[Receipt]:
        """Flatten the buckets, tagging each receipt with its bucket's source."""
        tagged = [r.model_copy(update={"source": SOURCE_EXCEL}) for r in self.spreadsheet]
        tagged += [r.model_copy(update={"source": SOURCE_CACHED}) for r in self.cached]
        tagged += [r.model_copy(update={"source": SOURCE_ANALYZED}) for r in self.batch]
        if self.current is not None:
            tagged.append(self.current.model_copy(update={"source": SOURCE_ANALYZED}))
        return tagged


class SourceReconciler:
    """Deduplicates receipts coming from several sources.

    Every call works on a full snapshot and returns new objects, so it has to
    be re-run over the complete recombined input whenever any source changes.
    """

    def __init__(self):
        self.logger = logger

    def reconcile(self, sources: ReceiptSources) -> ReconciliationResult:
        """Reconcile all provenance buckets.

        Args:
            sources: Snapshot of spreadsheet, cached, batch and current receipts

        Returns:
            ReconciliationResult with one receipt per id and the losers
        """
        return self.reconcile_receipts(sources.combined())

    def reconcile_receipts(self, receipts: Any) -> ReconciliationResult:
        """Reconcile an already combined list of receipts.

        Receipts are grouped by id. Within a group the receipt with the best
        source priority (excel, then cached, then analyzed, then anything else;
        ties keep input order) is kept; the others are returned as duplicates
        pointing at it. Groups appear in order of their first occurrence.

        Raises:
            InvalidInputError: If ``receipts`` is not a list
        """
        processed = process_receipts(receipts)

        groups: Dict[str, List[Receipt]] = {}
        for receipt in processed:
            groups.setdefault(receipt.id, []).append(receipt)

        unique: List[Receipt] = []
        duplicates: List[Receipt] = []
        for receipt_id, group in groups.items():
            ordered = sorted(group, key=source_rank)
            unique.append(ordered[0].model_copy(update={"duplicate_of": None}))
            for loser in ordered[1:]:
                duplicates.append(loser.model_copy(update={"duplicate_of": receipt_id}))

        if duplicates:
            self.logger.info(f"Reconciled {len(processed)} receipts: "
                             f"{len(unique)} unique, {len(duplicates)} duplicates")
        else:
            self.logger.debug(f"Reconciled {len(processed)} receipts, no duplicates")

        return ReconciliationResult(unique=unique, duplicates=duplicates)


def reconcile(sources: ReceiptSources) -> ReconciliationResult:
    """Module-level shortcut for ``SourceReconciler().reconcile``."""
    return SourceReconciler().reconcile(sources)
