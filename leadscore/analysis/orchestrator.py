"""Batch analysis over a whole search or one page of it."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List

from leadscore.analysis.item_analyzer import ItemAnalyzer
from leadscore.core.errors import SelectionError
from leadscore.core.store import RecordStore
from leadscore.models import AnalysisResult, AnalysisStatus, BatchOutcome, BusinessRecord, SearchScope

logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 1.5


class BatchOrchestrator:
    """Select, claim and analyze every eligible record in a scope.

    Items go through a pool of ``max_workers`` threads (1 by default, which
    processes records strictly in selection order). Each worker pauses
    ``delay_seconds`` after an item before taking the next one so provider
    rate limits are respected. There is no rollback: records claimed by a run
    that dies midway stay ``analyzing`` until revisited.
    """

    def __init__(
        self,
        store: RecordStore,
        analyzer: ItemAnalyzer,
        *,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        max_workers: int = 1,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.store = store
        self.analyzer = analyzer
        self.delay_seconds = delay_seconds
        self.max_workers = max_workers
        self._sleep = sleep

    def run(self, scope: SearchScope) -> BatchOutcome:
        outcome = BatchOutcome(scope=scope)
        logger.info("Starting enhanced analysis for %s", scope.describe())

        try:
            records = self.store.select_eligible(scope)
            outcome.selected = len(records)
            if not records:
                logger.info("No results need enhanced analysis for %s", scope.describe())
                return outcome
            claimed_ids = set(self.store.mark_analyzing([record.id for record in records]))
        except SelectionError as exc:
            logger.error("Could not select records for %s: %s", scope.describe(), exc)
            return outcome

        claimed = [record for record in records if record.id in claimed_ids]
        outcome.claimed = len(claimed)
        if len(claimed) < len(records):
            logger.info(
                "%d of %d records were claimed by another run and will be skipped",
                len(records) - len(claimed),
                len(records),
            )

        for record, result in zip(claimed, self._process_all(claimed)):
            if result.success:
                outcome.completed += 1
            else:
                outcome.failed += 1
                outcome.errors[record.id] = result.error or "unknown error"

        logger.info(
            "Analysis complete for %s. Completed: %d, Failed: %d",
            scope.describe(),
            outcome.completed,
            outcome.failed,
        )
        return outcome

    def _process_all(self, records: List[BusinessRecord]) -> List[AnalysisResult]:
        if not records:
            return []
        last_index = len(records) - 1
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="analysis") as pool:
            futures = [
                pool.submit(self._process_one, record, index != last_index)
                for index, record in enumerate(records)
            ]
            return [future.result() for future in futures]

    def _process_one(self, record: BusinessRecord, pause_after: bool) -> AnalysisResult:
        try:
            result = self.analyzer.score_one_business(record)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Exception analyzing %s: %s", record.business_name, exc)
            result = AnalysisResult(success=False, error=str(exc))
            try:
                self.store.update_status(record.id, AnalysisStatus.FAILED)
            except Exception as persist_exc:  # noqa: BLE001
                logger.error("Could not mark %s as failed: %s", record.id, persist_exc)

        if pause_after and self.delay_seconds > 0:
            self._sleep(self.delay_seconds)
        return result
