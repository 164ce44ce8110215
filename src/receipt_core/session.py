"""
Receipt session: the state behind one user's receipt workspace.
Keeps the provenance buckets, re-reconciles after every change and writes the
combined receipts back to the cache.
"""

import logging
from typing import List, Optional

from .identity import process_receipts
from .models import Receipt, ReconciliationResult, SOURCE_EXCEL, SOURCE_ANALYZED
from .reconcile import ReceiptSources, SourceReconciler
from .storage import ReceiptCache

logger = logging.getLogger(__name__)


class ReceiptSession:
    """Holds receipt sources and their reconciled view.

    Sources are replaced, never patched: each change builds a new
    ReceiptSources snapshot and reconciliation runs again over all of it.
    """

    def __init__(self, cache: Optional[ReceiptCache] = None,
                 reconciler: Optional[SourceReconciler] = None):
        self.cache = cache
        self.reconciler = reconciler or SourceReconciler()
        self.sources = ReceiptSources()
        self.result = ReconciliationResult()

    @property
    def receipts(self) -> List[Receipt]:
        """Deduplicated receipts."""
        return self.result.unique

    @property
    def duplicates(self) -> List[Receipt]:
        return self.result.duplicates

    def _all_sources(self) -> List[Receipt]:
        s = self.sources
        return list(s.spreadsheet) + list(s.cached) + list(s.batch) + ([s.current] if s.current else [])

    def _update(self, **buckets) -> ReconciliationResult:
        self.sources = self.sources.model_copy(update=buckets)
        return self.refresh()

    def refresh(self) -> ReconciliationResult:
        """Reconcile the full current snapshot and persist it."""
        self.result = self.reconciler.reconcile(self.sources)
        combined = self._all_sources()
        if self.cache is not None and combined:
            self.cache.save_receipts(combined)
        return self.result

    def load_from_cache(self) -> ReconciliationResult:
        """Restore spreadsheet and history buckets from the cache."""
        if self.cache is None:
            return self.result
        spreadsheet, cached = self.cache.load_split()
        logger.info(f"Restored {len(spreadsheet)} spreadsheet and {len(cached)} cached receipts")
        return self._update(spreadsheet=spreadsheet, cached=cached)

    def add_spreadsheet(self, receipts: List[Receipt]) -> ReconciliationResult:
        """Append receipts imported from a spreadsheet."""
        imported = process_receipts(receipts, SOURCE_EXCEL)
        return self._update(spreadsheet=list(self.sources.spreadsheet) + imported)

    def set_batch(self, receipts: List[Receipt]) -> ReconciliationResult:
        """Replace the batch-analyzed receipts."""
        return self._update(batch=process_receipts(receipts, SOURCE_ANALYZED))

    def set_current(self, receipt: Optional[Receipt]) -> ReconciliationResult:
        """Set (or clear) the most recently analyzed receipt."""
        current = process_receipts([receipt], SOURCE_ANALYZED)[0] if receipt is not None else None
        return self._update(current=current)

    def save_to_cache(self, receipt: Receipt) -> ReconciliationResult:
        """Insert or replace a receipt (matched by id) in the cached history."""
        receipt = process_receipts([receipt])[0]
        combined = self._all_sources()
        for index, existing in enumerate(combined):
            if existing.id == receipt.id:
                combined[index] = receipt
                break
        else:
            combined.append(receipt)

        if receipt.source == SOURCE_EXCEL:
            return self._update(spreadsheet=[r for r in combined if r.source == SOURCE_EXCEL])
        return self._update(cached=[r for r in combined if r.source != SOURCE_EXCEL])

    def clear_cache(self) -> ReconciliationResult:
        """Forget cached history and spreadsheet imports."""
        if self.cache is not None:
            self.cache.clear_receipts()
        self.sources = self.sources.model_copy(update={"spreadsheet": [], "cached": []})
        self.result = self.reconciler.reconcile(self.sources)
        return self.result

    def clear_all(self) -> ReconciliationResult:
        """Drop every source and the cache."""
        if self.cache is not None:
            self.cache.clear_receipts()
        self.sources = ReceiptSources()
        self.result = ReconciliationResult()
        return self.result
