"""Record store boundary and the in-memory implementation used for local runs and tests."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from leadscore.core.errors import PersistenceError
from leadscore.models import (
    AnalysisStatus,
    BusinessRecord,
    ELIGIBLE_STATUSES,
    ScoreBreakdown,
    SearchScope,
)

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """Operations the pipeline needs from persistent storage.

    Every write is scoped to a single record id and is visible to readers as
    soon as the call returns.
    """

    def insert_records(self, records: Sequence[BusinessRecord]) -> int:
        """Insert new records and return how many were added; existing ids are skipped."""
        ...

    def get_record(self, record_id: str) -> Optional[BusinessRecord]:
        ...

    def select_eligible(self, scope: SearchScope) -> List[BusinessRecord]:
        ...

    def mark_analyzing(self, record_ids: Sequence[str]) -> List[str]:
        ...

    def update_status(self, record_id: str, status: AnalysisStatus) -> None:
        ...

    def update_scores(
        self,
        record_id: str,
        scores: ScoreBreakdown,
        status: AnalysisStatus,
        analyzed_at: datetime,
    ) -> None:
        ...

    def count_by_status(self, scope: SearchScope) -> Dict[str, int]:
        ...


def ingest_rank(record: BusinessRecord) -> Optional[int]:
    """Page-ordering score frozen at insert time."""
    return record.rank_score if record.rank_score is not None else record.overall_score


def page_sort_key(record: BusinessRecord):
    """rank_score descending with nulls last, ties broken by id."""
    missing = record.rank_score is None
    return (missing, -(record.rank_score or 0), record.id)


class InMemoryRecordStore:
    """Thread-safe dict-backed RecordStore."""

    def __init__(self, records: Optional[Iterable[BusinessRecord]] = None) -> None:
        self._records: Dict[str, BusinessRecord] = {}
        self._lock = threading.Lock()
        if records:
            self.insert_records(list(records))

    def insert_records(self, records: Sequence[BusinessRecord]) -> int:
        """Add new records; ids that already exist are left untouched."""
        for record in records:
            if not record.business_name or not record.business_name.strip():
                raise ValueError("business_name is required for every record")

        inserted = 0
        with self._lock:
            for record in records:
                if record.id in self._records:
                    continue
                self._records[record.id] = replace(record, rank_score=ingest_rank(record))
                inserted += 1
        logger.debug("Inserted %d of %d records", inserted, len(records))
        return inserted

    def get_record(self, record_id: str) -> Optional[BusinessRecord]:
        with self._lock:
            record = self._records.get(record_id)
            return replace(record) if record else None

    def _in_scope(self, scope: SearchScope) -> List[BusinessRecord]:
        records = [r for r in self._records.values() if r.search_id == scope.search_id]
        if not scope.is_page:
            return records
        records.sort(key=page_sort_key)
        return records[scope.offset : scope.offset + scope.page_size]

    def select_eligible(self, scope: SearchScope) -> List[BusinessRecord]:
        with self._lock:
            return [replace(r) for r in self._in_scope(scope) if r.is_eligible]

    def mark_analyzing(self, record_ids: Sequence[str]) -> List[str]:
        claimed: List[str] = []
        with self._lock:
            for record_id in record_ids:
                record = self._records.get(record_id)
                if record is not None and record.analysis_status in ELIGIBLE_STATUSES:
                    record.analysis_status = AnalysisStatus.ANALYZING
                    claimed.append(record_id)
        return claimed

    def update_status(self, record_id: str, status: AnalysisStatus) -> None:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise PersistenceError(f"record {record_id} does not exist")
            record.analysis_status = status

    def update_scores(
        self,
        record_id: str,
        scores: ScoreBreakdown,
        status: AnalysisStatus,
        analyzed_at: datetime,
    ) -> None:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise PersistenceError(f"record {record_id} does not exist")
            record.website_quality_score = scores.website_quality
            record.digital_presence_score = scores.digital_presence
            record.seo_score = scores.seo
            record.overall_score = scores.overall
            record.analysis_status = status
            record.last_analyzed_at = analyzed_at

    def count_by_status(self, scope: SearchScope) -> Dict[str, int]:
        with self._lock:
            counts = Counter(r.analysis_status.value for r in self._in_scope(scope))
        return dict(counts)
