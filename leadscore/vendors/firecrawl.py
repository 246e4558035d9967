"""Firecrawl client returning rendered page content for website scoring."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from bs4 import BeautifulSoup

from leadscore.core.errors import PageFetchError
from leadscore.vendors.http import build_session

logger = logging.getLogger(__name__)
_SESSION = build_session()
_SCRAPE_URL = "https://api.firecrawl.dev/v0/scrape"


@dataclass(frozen=True, slots=True)
class PageContent:
    """Rendered content of a single page as returned by Firecrawl."""

    url: str
    markdown: Optional[str] = None
    html: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None

    @property
    def text(self) -> str:
        return self.markdown or self.html or ""


def _metadata_from_html(html: str) -> Dict[str, Optional[str]]:
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else None
    description = None
    meta = soup.find("meta", attrs={"name": "description"})
    if meta and meta.get("content"):
        description = meta["content"].strip()
    return {"title": title or None, "description": description or None}


def fetch_rendered_content(url: str, api_key: str, timeout: float = 10) -> PageContent:
    """Scrape ``url`` through Firecrawl and return its main content.

    The page is rendered remotely, so JavaScript-heavy sites still produce
    content. Title and description come from Firecrawl's metadata and fall
    back to the returned HTML when the metadata is missing.
    """
    if not api_key:
        raise PageFetchError("FIRECRAWL_API_KEY is not configured")

    body = {
        "url": url,
        "formats": ["markdown", "html"],
        "onlyMainContent": True,
        "includeTags": ["title", "meta", "h1", "h2", "h3"],
        "timeout": int(timeout * 1000),
    }
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    try:
        response = _SESSION.post(_SCRAPE_URL, json=body, headers=headers, timeout=timeout)
    except requests.Timeout as exc:
        raise PageFetchError(f"Firecrawl timed out fetching {url}") from exc
    except requests.RequestException as exc:
        raise PageFetchError(f"Firecrawl request failed for {url}: {exc}") from exc

    if not (200 <= response.status_code < 300):
        logger.error("Firecrawl scrape failed: status=%s url=%s", response.status_code, url)
        raise PageFetchError(f"Firecrawl API error: {response.status_code}")

    try:
        payload: Dict[str, Any] = response.json()
    except ValueError as exc:
        raise PageFetchError("Firecrawl returned a non-JSON body") from exc

    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        raise PageFetchError(f"Firecrawl returned no data for {url}")

    markdown = data.get("markdown") or None
    html = data.get("html") or None
    metadata = data.get("metadata") or {}
    title = metadata.get("title") or None
    description = metadata.get("description") or None
    if html and (title is None or description is None):
        parsed = _metadata_from_html(html)
        title = title or parsed["title"]
        description = description or parsed["description"]

    return PageContent(url=url, markdown=markdown, html=html, title=title, description=description)
