"""Shared HTTP session factory for provider clients."""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

USER_AGENT = "LeadScoreWorker/1.0"


def build_session(total_retries: int = 2, backoff_factor: float = 1.0) -> requests.Session:
    """Return a session that retries transient failures (429/5xx) with exponential backoff."""
    session = requests.Session()
    retries = Retry(
        total=total_retries,
        backoff_factor=backoff_factor,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("POST", "GET"),
        respect_retry_after_header=True,
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    session.headers.setdefault("User-Agent", USER_AGENT)
    return session
