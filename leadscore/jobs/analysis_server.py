"""HTTP entrypoint that ingests search results, queues analysis batches and reports progress."""

from __future__ import annotations

import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request

from leadscore.analysis.pipeline import AnalysisPipeline, build_pipeline
from leadscore.core.config import get_settings
from leadscore.core.errors import PersistenceError
from leadscore.core.rate_limiter import RateLimiter, rate_limit_key
from leadscore.etl.transform import to_business_record
from leadscore.models import SearchScope

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

# ---------- App & executor ----------
app = Flask(__name__)
# One batch at a time; further requests queue behind it.
_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="batch")


@lru_cache(maxsize=1)
def get_pipeline() -> AnalysisPipeline:
    return build_pipeline(get_settings())


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    return RateLimiter(settings.analysis_rate_limit, settings.analysis_rate_window_seconds)


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    """Simple root to avoid 404 on GET /"""
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only, never touches the database."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "worker_port_config": settings.worker_port,
                "store": "postgres" if settings.database_url else "memory",
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.post("/searches/<search_id>/results")
def ingest_results(search_id: str) -> Any:
    """
    Store the businesses discovered for a search.
    Required JSON field: results (list of objects with business_name/name)
    Optional: apply_basic_scores (bool)
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    results = payload.get("results")
    if not isinstance(results, list) or not results:
        return jsonify({"error": "results must be a non-empty list"}), 400

    apply_basic_scores = bool(payload.get("apply_basic_scores", False))
    try:
        records = [
            to_business_record(item, search_id, apply_basic_scores=apply_basic_scores)
            for item in results
            if isinstance(item, dict)
        ]
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    if len(records) != len(results):
        return jsonify({"error": "every result must be an object"}), 400

    try:
        inserted = get_pipeline().store.insert_records(records)
    except PersistenceError as exc:
        logger.error("Failed to store results for search %s: %s", search_id, exc)
        return jsonify({"error": "failed to store results"}), 500

    return jsonify({"data": {"inserted": inserted, "ids": [r.id for r in records]}}), 201


@app.post("/searches/<search_id>/analysis")
def enqueue_analysis(search_id: str) -> Any:
    """
    Queue enhanced analysis for a whole search or one page of it.
    Optional JSON fields: page (int), page_size (int, defaults to ANALYSIS_PAGE_SIZE)
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    scope, error = _scope_from(search_id, payload.get("page"), payload.get("page_size"))
    if error:
        return jsonify({"error": error}), 400

    user_id = request.headers.get("X-User-Id") or request.remote_addr or "anonymous"
    key = rate_limit_key(user_id, "analysis")
    limiter = get_rate_limiter()
    decision = limiter.check_limit(key)
    if not decision.allowed:
        retry_after = math.ceil(limiter.get_remaining_time(key))
        response = jsonify({"error": "rate limit exceeded", "retry_after": retry_after})
        response.headers["Retry-After"] = str(retry_after)
        return response, 429

    start_batch_analysis(scope)
    return (
        jsonify(
            {
                "data": {
                    "status": "queued",
                    "search_id": scope.search_id,
                    "page": scope.page,
                    "page_size": scope.page_size,
                    "remaining": decision.remaining,
                }
            }
        ),
        202,
    )


@app.get("/searches/<search_id>/analysis")
def analysis_progress(search_id: str) -> Any:
    """Aggregate analysis status; pass page (and optionally page_size) for one page."""
    scope, error = _scope_from(search_id, request.args.get("page"), request.args.get("page_size"))
    if error:
        return jsonify({"error": error}), 400
    progress = get_pipeline().progress.get(scope)
    return jsonify({"data": progress.to_dict()}), 200


@app.post("/results/<result_id>/score")
def score_result(result_id: str) -> Any:
    """Score one stored result right away and return its scores."""
    pipeline = get_pipeline()
    try:
        record = pipeline.store.get_record(result_id)
    except PersistenceError as exc:
        logger.error("Failed to load result %s: %s", result_id, exc)
        return jsonify({"success": False, "error": "failed to load result"}), 500
    if record is None:
        return jsonify({"success": False, "error": "result not found"}), 404

    result = pipeline.analyzer.score_one_business(record, mark_in_flight=True)
    return jsonify(result.to_dict()), 200 if result.success else 500


# ---------- Internals ----------


def start_batch_analysis(scope: SearchScope) -> None:
    """Fire-and-forget: the batch keeps running even if the caller goes away."""
    logger.info("Queueing analysis batch: %s", scope.describe())
    _executor.submit(_run_batch_safe, scope)


def _run_batch_safe(scope: SearchScope) -> None:
    try:
        outcome = get_pipeline().orchestrator.run(scope)
        logger.info(
            "Batch finished for %s: selected=%d completed=%d failed=%d",
            scope.describe(),
            outcome.selected,
            outcome.completed,
            outcome.failed,
        )
    except Exception as exc:  # noqa: BLE001
        logger.exception("Analysis batch failed: %s", exc)


def _positive_int(raw: Any, name: str) -> Tuple[Optional[int], Optional[str]]:
    if raw is None or raw == "":
        return None, None
    if isinstance(raw, bool):
        return None, f"{name} must be numeric"
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None, f"{name} must be numeric"
    if value <= 0:
        return None, f"{name} must be positive"
    return value, None


def _scope_from(search_id: str, page_raw: Any, page_size_raw: Any) -> Tuple[Optional[SearchScope], Optional[str]]:
    page, error = _positive_int(page_raw, "page")
    if error:
        return None, error
    page_size, error = _positive_int(page_size_raw, "page_size")
    if error:
        return None, error
    if page_size is not None and page_size > MAX_PAGE_SIZE:
        return None, f"page_size must be at most {MAX_PAGE_SIZE}"

    if page is None:
        if page_size is not None:
            return None, "page_size requires page"
        return SearchScope(search_id), None
    return SearchScope(search_id, page=page, page_size=page_size or get_settings().page_size), None


def main() -> None:
    """Bind on PORT when the platform injects one, otherwise 8080."""
    env_port = os.getenv("PORT")
    logger.info("[BOOT] ENV PORT=%s", env_port)

    port = int(env_port or 8080)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
