"""Assemble store, scorers, analyzer, orchestrator and progress reporter from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from leadscore.analysis.item_analyzer import ItemAnalyzer
from leadscore.analysis.orchestrator import BatchOrchestrator
from leadscore.analysis.progress import ProgressReporter
from leadscore.core.config import Settings, get_settings
from leadscore.core.store import InMemoryRecordStore, RecordStore
from leadscore.scoring.providers import build_scorers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisPipeline:
    store: RecordStore
    analyzer: ItemAnalyzer
    orchestrator: BatchOrchestrator
    progress: ProgressReporter


def build_store(settings: Settings) -> RecordStore:
    if settings.database_url:
        from leadscore.core.db import PostgresRecordStore

        return PostgresRecordStore()
    logger.warning("Using the in-memory record store; results will not survive a restart.")
    return InMemoryRecordStore()


def build_pipeline(settings: Optional[Settings] = None, store: Optional[RecordStore] = None) -> AnalysisPipeline:
    settings = settings or get_settings()
    store = store if store is not None else build_store(settings)
    presence_scorer, website_scorer = build_scorers(settings)
    analyzer = ItemAnalyzer(store, presence_scorer, website_scorer)
    orchestrator = BatchOrchestrator(
        store,
        analyzer,
        delay_seconds=settings.analysis_delay_seconds,
        max_workers=settings.analysis_max_workers,
    )
    return AnalysisPipeline(
        store=store,
        analyzer=analyzer,
        orchestrator=orchestrator,
        progress=ProgressReporter(store),
    )
