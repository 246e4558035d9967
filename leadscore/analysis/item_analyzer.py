"""Drive one business record from in-flight to a terminal analysis status."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from leadscore.core.errors import PersistenceError
from leadscore.core.store import RecordStore
from leadscore.models import AnalysisResult, AnalysisStatus, BusinessRecord, WebsiteScores
from leadscore.scoring.calculator import build_breakdown
from leadscore.scoring.providers import (
    DigitalPresenceScorer,
    WebsiteScorer,
    basic_digital_presence,
    basic_website_scores,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ItemAnalyzer:
    """Scores a single record and persists the outcome.

    ``score_one_business`` never raises: every failure ends with the record
    marked ``failed`` (best effort) and an unsuccessful AnalysisResult.
    """

    def __init__(
        self,
        store: RecordStore,
        presence_scorer: DigitalPresenceScorer,
        website_scorer: WebsiteScorer,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.presence_scorer = presence_scorer
        self.website_scorer = website_scorer
        self._clock = clock

    def score_one_business(self, record: BusinessRecord, *, mark_in_flight: bool = False) -> AnalysisResult:
        try:
            if not record.business_name or not record.business_name.strip():
                raise ValueError(f"record {record.id} has no business name")

            if mark_in_flight:
                self.store.update_status(record.id, AnalysisStatus.ANALYZING)

            logger.info("Analyzing business: %s", record.business_name)
            digital_presence = self._digital_presence(record)
            website = self._website_scores(record)
            scores = build_breakdown(website.quality, digital_presence, website.seo)

            self.store.update_scores(record.id, scores, AnalysisStatus.COMPLETE, self._clock())
        except PersistenceError as exc:
            logger.error("Failed to persist analysis for %s: %s", record.id, exc)
            return self._fail(record, exc)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Analysis failed for %s: %s", record.id, exc)
            return self._fail(record, exc)

        logger.info("Analysis complete for %s, overall score %d", record.business_name, scores.overall)
        return AnalysisResult(success=True, scores=scores)

    def _digital_presence(self, record: BusinessRecord) -> int:
        try:
            return self.presence_scorer.score(record.business_name, record.address, record.website)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Digital presence scorer raised for %s: %s", record.business_name, exc)
            return basic_digital_presence(record.website)

    def _website_scores(self, record: BusinessRecord) -> WebsiteScores:
        try:
            return self.website_scorer.score(record.website, record.business_name)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Website scorer raised for %s: %s", record.business_name, exc)
            return basic_website_scores(record.website)

    def _fail(self, record: BusinessRecord, exc: Exception) -> AnalysisResult:
        try:
            self.store.update_status(record.id, AnalysisStatus.FAILED)
        except Exception as persist_exc:  # noqa: BLE001
            logger.error("Could not mark %s as failed; it keeps its last status: %s", record.id, persist_exc)
        return AnalysisResult(success=False, error=str(exc) or exc.__class__.__name__)
