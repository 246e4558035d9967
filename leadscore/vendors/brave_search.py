"""Client utilities for the Brave Search web API."""

import logging
from typing import List

import requests

from leadscore.core.errors import SearchProviderError
from leadscore.vendors.http import build_session

logger = logging.getLogger(__name__)
_SESSION = build_session()
_BASE_URL = "https://api.search.brave.com/res/v1/web/search"


def web_search(query: str, api_key: str, count: int = 10, timeout: float = 10) -> List[str]:
    """Run a web search and return the result URLs in ranking order."""
    if not api_key:
        raise SearchProviderError("BRAVE_API_KEY is not configured")
    if not query or not query.strip():
        raise ValueError("Query must be provided for web searches.")

    headers = {
        "Accept": "application/json",
        "Accept-Encoding": "gzip",
        "X-Subscription-Token": api_key,
    }
    params = {"q": query.strip(), "count": count}
    try:
        response = _SESSION.get(_BASE_URL, params=params, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise SearchProviderError(f"Brave Search request failed: {exc}") from exc

    if not (200 <= response.status_code < 300):
        logger.error("web_search failed: status=%s body=%s", response.status_code, response.text[:200])
        raise SearchProviderError(f"Brave Search API error: {response.status_code}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise SearchProviderError("Brave Search returned a non-JSON body") from exc
    if not isinstance(payload, dict):
        raise SearchProviderError("Brave Search returned an unexpected payload")

    results = (payload.get("web") or {}).get("results") or []
    urls = [str(item.get("url") or "") for item in results if isinstance(item, dict)]
    logger.debug("web_search query=%s returned %d results", query, len(urls))
    return urls
