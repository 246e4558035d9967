"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from leadscore.core.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    database_url: str = ""
    brave_api_key: str = ""
    firecrawl_api_key: str = ""
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    request_timeout: float = 10.0
    analysis_delay_seconds: float = 1.5
    analysis_max_workers: int = 1
    page_size: int = 10
    analysis_rate_limit: int = 10
    analysis_rate_window_seconds: int = 3600
    worker_port: int = 9000


def _int_env(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {value}")
    return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    brave_api_key = os.getenv("BRAVE_API_KEY", "")
    firecrawl_api_key = os.getenv("FIRECRAWL_API_KEY", "")
    openai_api_key = os.getenv("OPENAI_API_KEY", "")
    openai_model = os.getenv("OPENAI_MODEL", "").strip() or "gpt-3.5-turbo"

    if not database_url:
        logger.warning("DATABASE_URL is not set; falling back to the in-memory record store.")
    if not brave_api_key:
        logger.warning("BRAVE_API_KEY is not configured; digital presence will use basic scores.")
    if not firecrawl_api_key or not openai_api_key:
        logger.warning(
            "FIRECRAWL_API_KEY or OPENAI_API_KEY is not configured; website quality and SEO will use basic scores."
        )

    return Settings(
        database_url=database_url,
        brave_api_key=brave_api_key,
        firecrawl_api_key=firecrawl_api_key,
        openai_api_key=openai_api_key,
        openai_model=openai_model,
        request_timeout=_float_env("REQUEST_TIMEOUT_SECONDS", 10.0),
        analysis_delay_seconds=_float_env("ANALYSIS_DELAY_SECONDS", 1.5),
        analysis_max_workers=_int_env("ANALYSIS_MAX_WORKERS", 1, minimum=1),
        page_size=_int_env("ANALYSIS_PAGE_SIZE", 10, minimum=1),
        analysis_rate_limit=_int_env("ANALYSIS_RATE_LIMIT", 10, minimum=1),
        analysis_rate_window_seconds=_int_env("ANALYSIS_RATE_WINDOW_SECONDS", 3600, minimum=1),
        worker_port=_int_env("WORKER_PORT", 9000, minimum=1),
    )
