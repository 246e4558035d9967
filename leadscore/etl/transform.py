"""Utilities for turning discovered businesses into search result records."""

import logging
import uuid
from typing import Any, Dict, Optional
from urllib.parse import urlparse, urlunparse

from leadscore.models import AnalysisStatus, BusinessRecord
from leadscore.scoring.calculator import build_breakdown
from leadscore.scoring.providers import basic_digital_presence, basic_website_scores

logger = logging.getLogger(__name__)


def sanitize_website(raw_url: Optional[str]) -> Optional[str]:
    """Normalise raw website strings into absolute URLs (https when no scheme is given)."""

    if not raw_url:
        return None

    url = str(raw_url).strip()
    if not url:
        return None

    parsed = urlparse(url, scheme="https")
    if not parsed.netloc:
        parsed = urlparse(f"https://{url}")

    if not parsed.netloc or "." not in parsed.netloc:
        return None

    normalized_path = parsed.path or "/"
    if not normalized_path.startswith("/"):
        normalized_path = f"/{normalized_path}"

    normalized = parsed._replace(path=normalized_path, fragment="")
    return urlunparse(normalized)


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def to_business_record(
    result: Dict[str, Any],
    search_id: str,
    *,
    apply_basic_scores: bool = False,
) -> BusinessRecord:
    """Build a BusinessRecord from a discovery result.

    Accepts both ``business_name`` and ``name`` keys. With
    ``apply_basic_scores`` the cheap website-based heuristic is applied and the
    record starts as ``basic_complete`` instead of ``pending``.
    """
    name = _strip_or_none(result.get("business_name") or result.get("name"))
    if not name:
        raise ValueError("business_name is required")

    website = sanitize_website(result.get("website"))
    record = BusinessRecord(
        id=_strip_or_none(result.get("id")) or str(uuid.uuid4()),
        search_id=search_id,
        business_name=name,
        address=_strip_or_none(result.get("address")),
        phone=_strip_or_none(result.get("phone")),
        email=_strip_or_none(result.get("email")),
        website=website,
    )
    if result.get("website") and not website:
        logger.debug("Dropping unusable website %r for %s", result.get("website"), name)

    if apply_basic_scores:
        site = basic_website_scores(website)
        scores = build_breakdown(site.quality, basic_digital_presence(website), site.seo)
        record.website_quality_score = scores.website_quality
        record.digital_presence_score = scores.digital_presence
        record.seo_score = scores.seo
        record.overall_score = scores.overall
        record.analysis_status = AnalysisStatus.BASIC_COMPLETE

    return record
