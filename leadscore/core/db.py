"""PostgreSQL-backed record store for search results."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import psycopg2
from psycopg2 import extras, pool

from leadscore.core.config import get_settings
from leadscore.core.errors import PersistenceError, SelectionError
from leadscore.core.store import ingest_rank
from leadscore.models import (
    AnalysisStatus,
    BusinessRecord,
    ELIGIBLE_STATUSES,
    ScoreBreakdown,
    SearchScope,
    coerce_status,
)

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None

_ELIGIBLE = [status.value for status in ELIGIBLE_STATUSES]
_COLUMNS = """
    id::text AS id,
    search_id::text AS search_id,
    business_name,
    address,
    phone,
    email,
    website,
    website_quality_score,
    digital_presence_score,
    seo_score,
    overall_score,
    rank_score,
    analysis_status,
    last_analyzed
"""


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    except Exception:
        conn.rollback()
        raise
    finally:
        pg_pool.putconn(conn)


def _scope_query(scope: SearchScope) -> Tuple[str, Dict[str, Any]]:
    """Return a sub-select over the records in scope plus its parameters."""
    params: Dict[str, Any] = {"search_id": scope.search_id}
    if not scope.is_page:
        return "SELECT * FROM search_results WHERE search_id = %(search_id)s", params

    params["limit"] = scope.page_size
    params["offset"] = scope.offset
    sql = """
        SELECT * FROM search_results
        WHERE search_id = %(search_id)s
        ORDER BY rank_score DESC NULLS LAST, id
        LIMIT %(limit)s OFFSET %(offset)s
    """
    return sql, params


def _row_to_record(row: Dict[str, Any]) -> BusinessRecord:
    return BusinessRecord(
        id=row["id"],
        search_id=row["search_id"],
        business_name=row["business_name"],
        address=row.get("address"),
        phone=row.get("phone"),
        email=row.get("email"),
        website=row.get("website"),
        website_quality_score=row.get("website_quality_score") or 0,
        digital_presence_score=row.get("digital_presence_score") or 0,
        seo_score=row.get("seo_score") or 0,
        overall_score=row.get("overall_score"),
        rank_score=row.get("rank_score"),
        analysis_status=coerce_status(row.get("analysis_status")),
        last_analyzed_at=row.get("last_analyzed"),
    )


def _prepare_params(record: BusinessRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "search_id": str(record.search_id),
        "business_name": record.business_name,
        "address": record.address,
        "phone": record.phone,
        "email": record.email,
        "website": record.website,
        "website_quality_score": record.website_quality_score,
        "digital_presence_score": record.digital_presence_score,
        "seo_score": record.seo_score,
        "overall_score": record.overall_score,
        "rank_score": ingest_rank(record),
        "analysis_status": record.analysis_status.value,
    }


_INSERT_RESULT = """
INSERT INTO search_results (
    id,
    search_id,
    business_name,
    address,
    phone,
    email,
    website,
    website_quality_score,
    digital_presence_score,
    seo_score,
    overall_score,
    rank_score,
    analysis_status,
    created_at
) VALUES (
    %(id)s,
    %(search_id)s,
    %(business_name)s,
    %(address)s,
    %(phone)s,
    %(email)s,
    %(website)s,
    %(website_quality_score)s,
    %(digital_presence_score)s,
    %(seo_score)s,
    %(overall_score)s,
    %(rank_score)s,
    %(analysis_status)s,
    NOW()
)
ON CONFLICT (id) DO NOTHING;
"""

_CLAIM = """
UPDATE search_results
SET analysis_status = 'analyzing'
WHERE id::text = ANY(%(ids)s)
  AND analysis_status = ANY(%(eligible)s)
RETURNING id::text;
"""

_UPDATE_STATUS = """
UPDATE search_results SET analysis_status = %(status)s WHERE id::text = %(id)s;
"""

_UPDATE_SCORES = """
UPDATE search_results SET
    website_quality_score = %(website_quality)s,
    digital_presence_score = %(digital_presence)s,
    seo_score = %(seo)s,
    overall_score = %(overall)s,
    analysis_status = %(status)s,
    last_analyzed = %(analyzed_at)s
WHERE id::text = %(id)s;
"""


class PostgresRecordStore:
    """RecordStore over the `search_results` table.

    Each call runs in its own transaction and commits before returning, so
    status changes are visible to polling readers immediately.
    """

    def insert_records(self, records: Sequence[BusinessRecord]) -> int:
        for record in records:
            if not record.business_name or not record.business_name.strip():
                raise ValueError("business_name is required for every record")
        if not records:
            return 0

        inserted = 0
        try:
            with get_connection() as conn:
                with conn.cursor() as cur:
                    for record in records:
                        cur.execute(_INSERT_RESULT, _prepare_params(record))
                        # 0 when the id already exists
                        inserted += max(cur.rowcount, 0)
                conn.commit()
        except psycopg2.Error as exc:
            raise PersistenceError(f"failed to insert search results: {exc}") from exc
        logger.info("Inserted %d of %d search results", inserted, len(records))
        return inserted

    def get_record(self, record_id: str) -> Optional[BusinessRecord]:
        sql = f"SELECT {_COLUMNS} FROM search_results WHERE id::text = %(id)s"
        try:
            with get_connection() as conn:
                with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                    cur.execute(sql, {"id": record_id})
                    row = cur.fetchone()
        except psycopg2.Error as exc:
            raise PersistenceError(f"failed to load record {record_id}: {exc}") from exc
        return _row_to_record(row) if row else None

    def select_eligible(self, scope: SearchScope) -> List[BusinessRecord]:
        inner, params = _scope_query(scope)
        params["eligible"] = _ELIGIBLE
        sql = f"SELECT {_COLUMNS} FROM ({inner}) AS scoped WHERE analysis_status = ANY(%(eligible)s)"
        if scope.is_page:
            sql += " ORDER BY rank_score DESC NULLS LAST, id"
        try:
            with get_connection() as conn:
                with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                    cur.execute(sql, params)
                    rows = cur.fetchall()
        except psycopg2.Error as exc:
            raise SelectionError(f"failed to select eligible records ({scope.describe()}): {exc}") from exc
        return [_row_to_record(row) for row in rows]

    def mark_analyzing(self, record_ids: Sequence[str]) -> List[str]:
        if not record_ids:
            return []
        try:
            with get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(_CLAIM, {"ids": list(record_ids), "eligible": _ELIGIBLE})
                    claimed = {row[0] for row in cur.fetchall()}
                conn.commit()
        except psycopg2.Error as exc:
            raise SelectionError(f"failed to claim records: {exc}") from exc
        return [record_id for record_id in record_ids if record_id in claimed]

    def update_status(self, record_id: str, status: AnalysisStatus) -> None:
        self._execute_write(_UPDATE_STATUS, {"id": record_id, "status": status.value}, record_id)

    def update_scores(
        self,
        record_id: str,
        scores: ScoreBreakdown,
        status: AnalysisStatus,
        analyzed_at: datetime,
    ) -> None:
        params = {
            "id": record_id,
            "website_quality": scores.website_quality,
            "digital_presence": scores.digital_presence,
            "seo": scores.seo,
            "overall": scores.overall,
            "status": status.value,
            "analyzed_at": analyzed_at,
        }
        self._execute_write(_UPDATE_SCORES, params, record_id)

    def count_by_status(self, scope: SearchScope) -> Dict[str, int]:
        inner, params = _scope_query(scope)
        sql = f"""
            SELECT COALESCE(analysis_status, 'pending') AS status, COUNT(*) AS count
            FROM ({inner}) AS scoped
            GROUP BY 1
        """
        try:
            with get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    rows = cur.fetchall()
        except psycopg2.Error as exc:
            raise PersistenceError(f"failed to count statuses ({scope.describe()}): {exc}") from exc
        return {status: int(count) for status, count in rows}

    def _execute_write(self, sql: str, params: Dict[str, Any], record_id: str) -> None:
        try:
            with get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    if cur.rowcount == 0:
                        raise PersistenceError(f"record {record_id} does not exist")
                conn.commit()
        except psycopg2.Error as exc:
            raise PersistenceError(f"failed to update record {record_id}: {exc}") from exc
        logger.debug("Updated search result %s", record_id)
