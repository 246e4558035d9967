"""Read-only analysis progress for polling clients."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Optional

from leadscore.core.errors import LeadScoreError
from leadscore.core.store import RecordStore
from leadscore.models import (
    AnalysisProgress,
    AnalysisStatus,
    PageAnalysisProgress,
    SearchScope,
    coerce_status,
)

logger = logging.getLogger(__name__)


def bucket_counts(raw_counts: Dict[str, int]) -> Counter:
    """Fold stored status counts into pending/analyzing/complete/failed buckets."""
    buckets: Counter = Counter()
    for raw_status, count in raw_counts.items():
        status = coerce_status(raw_status)
        if status is AnalysisStatus.BASIC_COMPLETE:
            status = AnalysisStatus.PENDING
        buckets[status] += count
    return buckets


def rollup_status(total: int, analyzing: int, completed: int, failed: int) -> AnalysisStatus:
    """Single status for a page.

    Precedence: analyzing, then done (complete when at least one item
    completed, failed when every item failed), then pending. An empty page has
    nothing left to do and counts as complete.
    """
    if analyzing > 0:
        return AnalysisStatus.ANALYZING
    if total == 0:
        return AnalysisStatus.COMPLETE
    if completed + failed == total:
        return AnalysisStatus.COMPLETE if completed > 0 else AnalysisStatus.FAILED
    return AnalysisStatus.PENDING


class ProgressReporter:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def _counts(self, scope: SearchScope) -> Optional[Counter]:
        try:
            return bucket_counts(self.store.count_by_status(scope))
        except LeadScoreError as exc:
            logger.error("Error fetching analysis progress for %s: %s", scope.describe(), exc)
            return None

    def get_progress(self, search_id: str) -> AnalysisProgress:
        counts = self._counts(SearchScope(search_id))
        if counts is None:
            return AnalysisProgress()
        return AnalysisProgress(
            total=sum(counts.values()),
            pending=counts[AnalysisStatus.PENDING],
            analyzing=counts[AnalysisStatus.ANALYZING],
            complete=counts[AnalysisStatus.COMPLETE],
            failed=counts[AnalysisStatus.FAILED],
        )

    def get_page_progress(self, search_id: str, page: int, page_size: int) -> PageAnalysisProgress:
        scope = SearchScope(search_id, page=page, page_size=page_size)
        counts = self._counts(scope)
        if counts is None:
            return PageAnalysisProgress(page=page)
        total = sum(counts.values())
        analyzing = counts[AnalysisStatus.ANALYZING]
        completed = counts[AnalysisStatus.COMPLETE]
        failed = counts[AnalysisStatus.FAILED]
        return PageAnalysisProgress(
            page=page,
            total=total,
            completed=completed,
            analyzing=analyzing,
            failed=failed,
            pending=counts[AnalysisStatus.PENDING],
            status=rollup_status(total, analyzing, completed, failed),
        )

    def get(self, scope: SearchScope):
        """Progress for ``scope``: page progress for a page scope, search progress otherwise."""
        if scope.is_page:
            return self.get_page_progress(scope.search_id, scope.page, scope.page_size)
        return self.get_progress(scope.search_id)
