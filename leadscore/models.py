"""Core data models shared by the analysis pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class AnalysisStatus(str, Enum):
    PENDING = "pending"
    BASIC_COMPLETE = "basic_complete"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    FAILED = "failed"


ELIGIBLE_STATUSES = (AnalysisStatus.PENDING, AnalysisStatus.BASIC_COMPLETE)

MAX_WEBSITE_QUALITY = 40
MAX_DIGITAL_PRESENCE = 30
MAX_SEO = 30
MAX_OVERALL = 100


def coerce_status(value: Any) -> AnalysisStatus:
    """Map a stored status value onto AnalysisStatus; unknown or null values count as pending."""
    if isinstance(value, AnalysisStatus):
        return value
    try:
        return AnalysisStatus(value)
    except ValueError:
        return AnalysisStatus.PENDING


@dataclass(slots=True)
class BusinessRecord:
    """One discovered business tied to a search, with its presence scores."""

    id: str
    search_id: str
    business_name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    website_quality_score: int = 0
    digital_presence_score: int = 0
    seo_score: int = 0
    overall_score: Optional[int] = None
    # overall score at ingest; page order, never rewritten by analysis
    rank_score: Optional[int] = None
    analysis_status: AnalysisStatus = AnalysisStatus.PENDING
    last_analyzed_at: Optional[datetime] = None

    @property
    def is_eligible(self) -> bool:
        return self.analysis_status in ELIGIBLE_STATUSES


@dataclass(frozen=True, slots=True)
class SearchScope:
    """Selects either every record of a search or one page of it (1-based page)."""

    search_id: str
    page: Optional[int] = None
    page_size: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.search_id:
            raise ValueError("search_id is required")
        if (self.page is None) != (self.page_size is None):
            raise ValueError("page and page_size must be given together")
        if self.page is not None and (self.page < 1 or self.page_size < 1):
            raise ValueError("page and page_size must be positive")

    @property
    def is_page(self) -> bool:
        return self.page is not None

    @property
    def offset(self) -> int:
        if not self.is_page:
            return 0
        return (self.page - 1) * self.page_size

    def describe(self) -> str:
        if self.is_page:
            return f"search={self.search_id} page={self.page} page_size={self.page_size}"
        return f"search={self.search_id}"


@dataclass(frozen=True, slots=True)
class WebsiteScores:
    quality: int
    seo: int


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    website_quality: int
    digital_presence: int
    seo: int
    overall: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "website_quality": self.website_quality,
            "digital_presence": self.digital_presence,
            "seo": self.seo,
            "overall": self.overall,
        }


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    success: bool
    scores: Optional[ScoreBreakdown] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.scores is not None:
            payload["scores"] = self.scores.to_dict()
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True, slots=True)
class AnalysisProgress:
    """Aggregate analysis counts for a whole search."""

    total: int = 0
    pending: int = 0
    analyzing: int = 0
    complete: int = 0
    failed: int = 0

    @property
    def completion_percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.complete + self.failed) / self.total * 100

    @property
    def is_finished(self) -> bool:
        return self.total > 0 and self.pending == 0 and self.analyzing == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "pending": self.pending,
            "analyzing": self.analyzing,
            "complete": self.complete,
            "failed": self.failed,
            "completion_percentage": round(self.completion_percentage, 1),
            "is_finished": self.is_finished,
        }


@dataclass(frozen=True, slots=True)
class PageAnalysisProgress:
    """Aggregate analysis counts for one page plus a single rollup status."""

    page: int
    total: int = 0
    completed: int = 0
    analyzing: int = 0
    failed: int = 0
    pending: int = 0
    status: AnalysisStatus = AnalysisStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "total": self.total,
            "completed": self.completed,
            "analyzing": self.analyzing,
            "failed": self.failed,
            "pending": self.pending,
            "status": self.status.value,
        }


@dataclass(slots=True)
class BatchOutcome:
    scope: SearchScope
    selected: int = 0
    claimed: int = 0
    completed: int = 0
    failed: int = 0
    errors: Dict[str, str] = field(default_factory=dict, repr=False)

    @property
    def processed(self) -> int:
        return self.completed + self.failed
