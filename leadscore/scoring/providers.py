"""Score provider adapters wrapping the external scoring capabilities.

Each adapter answers with a number in its valid range no matter what the
upstream API does: missing credentials and provider failures are logged and
replaced by the basic heuristic for that capability.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol, Sequence

from leadscore.core.config import Settings
from leadscore.core.errors import ParseError, ProviderError
from leadscore.models import MAX_DIGITAL_PRESENCE, MAX_SEO, MAX_WEBSITE_QUALITY, WebsiteScores
from leadscore.scoring.calculator import clamp
from leadscore.vendors import brave_search, firecrawl, openai_chat

logger = logging.getLogger(__name__)

SOCIAL_PLATFORMS = ("facebook.com", "instagram.com", "twitter.com", "linkedin.com", "youtube.com")
DIRECTORY_PLATFORMS = ("yelp.com", "google.com/maps", "yellowpages.com", "bbb.org")

BASE_PRESENCE_SCORE = 5
SOCIAL_POINTS = 3
SOCIAL_CAP = 12
DIRECTORY_POINTS = 2
DIRECTORY_CAP = 8
SEARCH_RESULT_COUNT = 10

UNPARSABLE_REPLY_SCORES = WebsiteScores(quality=20, seo=15)


class DigitalPresenceScorer(Protocol):
    def score(self, business_name: str, address: Optional[str] = None, website: Optional[str] = None) -> int:
        ...


class WebsiteScorer(Protocol):
    def score(self, website: Optional[str], business_name: str) -> WebsiteScores:
        ...


def basic_digital_presence(website: Optional[str]) -> int:
    return 15 if website else 5


def basic_website_scores(website: Optional[str]) -> WebsiteScores:
    if website:
        return WebsiteScores(quality=20, seo=10)
    return WebsiteScores(quality=0, seo=0)


def build_search_query(business_name: str, address: Optional[str] = None) -> str:
    if address:
        return f'"{business_name}" "{address}"'
    return f'"{business_name}"'


def score_search_results(result_urls: Sequence[str]) -> int:
    """Score a list of search result URLs for social, directory and volume signals."""
    social = 0
    directory = 0
    for raw_url in result_urls:
        url = (raw_url or "").lower()
        if any(platform in url for platform in SOCIAL_PLATFORMS):
            social = min(social + SOCIAL_POINTS, SOCIAL_CAP)
        if any(platform in url for platform in DIRECTORY_PLATFORMS):
            directory = min(directory + DIRECTORY_POINTS, DIRECTORY_CAP)

    score = BASE_PRESENCE_SCORE + social + directory
    if len(result_urls) >= 5:
        score += 3
    if len(result_urls) >= 10:
        score += 2
    return min(score, MAX_DIGITAL_PRESENCE)


class HeuristicDigitalPresenceScorer:
    """Deterministic scorer that never calls out; answers with the basic heuristic."""

    def score(self, business_name: str, address: Optional[str] = None, website: Optional[str] = None) -> int:
        return basic_digital_presence(website)


class HeuristicWebsiteScorer:
    """Deterministic scorer that never calls out; answers with the basic heuristic."""

    def score(self, website: Optional[str], business_name: str) -> WebsiteScores:
        return basic_website_scores(website)


class SearchPresenceScorer:
    """Digital presence from web search results for the business name."""

    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = 10,
        search: Callable[..., List[str]] = brave_search.web_search,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self._search = search

    def score(self, business_name: str, address: Optional[str] = None, website: Optional[str] = None) -> int:
        if not self.api_key:
            return basic_digital_presence(website)

        query = build_search_query(business_name, address)
        try:
            urls = self._search(query, self.api_key, count=SEARCH_RESULT_COUNT, timeout=self.timeout)
        except ProviderError as exc:
            logger.warning("Search presence analysis failed for %s: %s", business_name, exc)
            return basic_digital_presence(website)
        return score_search_results(urls)


class RenderedContentScorer:
    """Website quality and SEO rated by a language model from rendered page content."""

    def __init__(
        self,
        firecrawl_api_key: str,
        openai_api_key: str,
        *,
        model: str = "gpt-3.5-turbo",
        timeout: float = 10,
        fetch: Callable[..., firecrawl.PageContent] = firecrawl.fetch_rendered_content,
        rate: Callable[..., WebsiteScores] = openai_chat.rate_website,
    ) -> None:
        self.firecrawl_api_key = firecrawl_api_key
        self.openai_api_key = openai_api_key
        self.model = model
        self.timeout = timeout
        self._fetch = fetch
        self._rate = rate

    def score(self, website: Optional[str], business_name: str) -> WebsiteScores:
        if not website or not self.firecrawl_api_key or not self.openai_api_key:
            return basic_website_scores(website)

        try:
            page = self._fetch(website, self.firecrawl_api_key, timeout=self.timeout)
            rated = self._rate(page, business_name, self.openai_api_key, model=self.model, timeout=self.timeout)
        except ParseError as exc:
            logger.warning("Unparsable website rating for %s: %s", business_name, exc)
            return UNPARSABLE_REPLY_SCORES
        except ProviderError as exc:
            logger.warning("Website analysis failed for %s (%s): %s", business_name, website, exc)
            return basic_website_scores(website)

        return WebsiteScores(
            quality=clamp(rated.quality, MAX_WEBSITE_QUALITY),
            seo=clamp(rated.seo, MAX_SEO),
        )


def build_scorers(settings: Settings):
    """Return the production (presence, website) scorer pair for ``settings``."""
    presence = SearchPresenceScorer(settings.brave_api_key, timeout=settings.request_timeout)
    website = RenderedContentScorer(
        settings.firecrawl_api_key,
        settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.request_timeout,
    )
    return presence, website
