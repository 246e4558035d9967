"""OpenAI chat completions client used to rate website quality and SEO."""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Dict

import requests

from leadscore.core.errors import LanguageModelError, ParseError
from leadscore.models import WebsiteScores
from leadscore.vendors.firecrawl import PageContent
from leadscore.vendors.http import build_session

logger = logging.getLogger(__name__)
_SESSION = build_session()
_COMPLETIONS_URL = "https://api.openai.com/v1/chat/completions"

MAX_CONTENT_CHARS = 2000
_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)

PROMPT_TEMPLATE = """
Analyze this website for "{business_name}" and provide scores (0-40 for website quality, 0-30 for SEO):

WEBSITE CONTENT:
{content}

METADATA:
Title: {title}
Description: {description}

Score based on:
WEBSITE QUALITY (0-40):
- Professional design and layout (0-10)
- Mobile responsiveness (0-10)
- Content quality and completeness (0-10)
- User experience and navigation (0-10)

SEO (0-30):
- Title and meta descriptions (0-10)
- Header structure and content (0-10)
- Overall SEO optimization (0-10)

Respond with only a JSON object: {{"websiteQuality": number, "seo": number}}
"""


def build_prompt(page: PageContent, business_name: str) -> str:
    return PROMPT_TEMPLATE.format(
        business_name=business_name,
        content=page.text[:MAX_CONTENT_CHARS],
        title=page.title or "None",
        description=page.description or "None",
    )


def parse_rating(reply: str) -> WebsiteScores:
    """Parse the two-field JSON reply; values are returned unclamped but rounded."""
    text = (reply or "").strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)

    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ParseError(f"language model reply is not JSON: {reply[:80]!r}") from exc
    if not isinstance(data, dict):
        raise ParseError("language model reply is not a JSON object")

    quality = data.get("websiteQuality")
    seo = data.get("seo")
    for name, value in (("websiteQuality", quality), ("seo", seo)):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ParseError(f"language model reply has no numeric {name}")
    return WebsiteScores(quality=round(quality), seo=round(seo))


def rate_website(
    page: PageContent,
    business_name: str,
    api_key: str,
    model: str = "gpt-3.5-turbo",
    timeout: float = 10,
) -> WebsiteScores:
    """Ask the model to rate ``page`` with the fixed rubric."""
    if not api_key:
        raise LanguageModelError("OPENAI_API_KEY is not configured")

    body: Dict[str, Any] = {
        "model": model,
        "messages": [{"role": "user", "content": build_prompt(page, business_name)}],
        "max_tokens": 100,
        "temperature": 0.1,
    }
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    try:
        response = _SESSION.post(_COMPLETIONS_URL, json=body, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise LanguageModelError(f"OpenAI request failed: {exc}") from exc

    if not (200 <= response.status_code < 300):
        logger.error("OpenAI completion failed: status=%s body=%s", response.status_code, response.text[:200])
        raise LanguageModelError(f"OpenAI API error: {response.status_code}")

    try:
        payload = response.json()
        reply = payload["choices"][0]["message"]["content"] or ""
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise LanguageModelError("OpenAI returned an unexpected completion payload") from exc

    logger.debug("OpenAI rating reply for %s: %s", business_name, reply)
    return parse_rating(reply)
