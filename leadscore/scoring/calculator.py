"""Combine presence sub-scores into the bounded overall score."""

from leadscore.models import (
    MAX_DIGITAL_PRESENCE,
    MAX_OVERALL,
    MAX_SEO,
    MAX_WEBSITE_QUALITY,
    ScoreBreakdown,
)


def clamp(value: int, upper: int, lower: int = 0) -> int:
    return max(lower, min(int(value), upper))


def calculate_overall(website_quality: int, digital_presence: int, seo: int) -> int:
    """Return ``min(quality + presence + seo, 100)``, never below zero."""
    return clamp(website_quality + digital_presence + seo, MAX_OVERALL)


def build_breakdown(website_quality: int, digital_presence: int, seo: int) -> ScoreBreakdown:
    """Clamp each sub-score into its range and derive the overall score from the clamped values."""
    quality = clamp(website_quality, MAX_WEBSITE_QUALITY)
    presence = clamp(digital_presence, MAX_DIGITAL_PRESENCE)
    seo_score = clamp(seo, MAX_SEO)
    return ScoreBreakdown(
        website_quality=quality,
        digital_presence=presence,
        seo=seo_score,
        overall=calculate_overall(quality, presence, seo_score),
    )
