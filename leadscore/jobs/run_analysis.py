"""CLI job to run enhanced analysis for a search (or one page of it) and report progress."""

import argparse
import json
import logging
from typing import Optional

from leadscore.analysis.pipeline import build_pipeline
from leadscore.core.config import get_settings
from leadscore.models import BatchOutcome, SearchScope

logger = logging.getLogger(__name__)


def run_analysis_job(*, search_id: str, page: Optional[int], page_size: int) -> BatchOutcome:
    if not search_id or not search_id.strip():
        raise ValueError("search_id must not be empty")

    scope = SearchScope(search_id.strip(), page=page, page_size=page_size if page else None)
    pipeline = build_pipeline(get_settings())
    outcome = pipeline.orchestrator.run(scope)

    logger.info(
        "Completed run: selected=%d claimed=%d completed=%d failed=%d",
        outcome.selected,
        outcome.claimed,
        outcome.completed,
        outcome.failed,
    )
    for record_id, error in outcome.errors.items():
        logger.warning("Result %s failed: %s", record_id, error)
    return outcome


def report_progress(*, search_id: str, page: Optional[int], page_size: int) -> dict:
    scope = SearchScope(search_id.strip(), page=page, page_size=page_size if page else None)
    pipeline = build_pipeline(get_settings())
    return pipeline.progress.get(scope).to_dict()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run website presence analysis for a search")
    parser.add_argument("--search-id", dest="search_id", required=True, help="Search whose results to analyze")
    parser.add_argument("--page", dest="page", type=int, help="Only analyze this 1-based page of results")
    parser.add_argument(
        "--page-size",
        dest="page_size",
        type=int,
        default=get_settings().page_size,
        help="Results per page when --page is given",
    )
    parser.add_argument(
        "--progress-only",
        dest="progress_only",
        action="store_true",
        help="Print current progress as JSON instead of running a batch",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()
    if args.page is not None and args.page < 1:
        parser.error("--page must be positive")
    if args.page_size < 1:
        parser.error("--page-size must be positive")

    if args.progress_only:
        print(json.dumps(report_progress(search_id=args.search_id, page=args.page, page_size=args.page_size)))
        return

    run_analysis_job(search_id=args.search_id, page=args.page, page_size=args.page_size)


if __name__ == "__main__":
    main()
