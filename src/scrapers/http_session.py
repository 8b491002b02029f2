"""Shared HTTP session factory with retry policy."""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

# User-Agent to avoid being blocked by news sites
HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept-Language": "en,it;q=0.9",
}


def build_session(
    total_retries: int = 3,
    allowed_methods: tuple[str, ...] = ("GET",),
    pool_size: int = 10,
) -> requests.Session:
    """Create an HTTP session with automatic retries on 429/5xx."""
    session = requests.Session()
    retries = Retry(
        total=total_retries,
        connect=total_retries,
        read=total_retries,
        backoff_factor=0.8,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=allowed_methods,
    )
    adapter = HTTPAdapter(max_retries=retries, pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session
