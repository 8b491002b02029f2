"""
News search retriever.
Queries the news search API for every keyword term and page, and merges
the results into one list without duplicate URLs.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import requests

from config import (
    MAX_CONCURRENCY,
    NEWS_API_BASE_URL,
    NEWS_API_KEY,
    NEWS_LANGUAGE,
    NEWS_PAGE_SIZE,
    NEWS_SORT_BY,
    PAGE_LIMIT,
    REQUEST_TIMEOUT_SECONDS,
)
from src.errors import InvalidQuery, UpstreamUnavailable
from src.models import ArticleRecord
from src.scrapers.http_session import build_session

logger = logging.getLogger(__name__)

KEYWORD_DELIMITER = ","


def parse_keywords(query: str | None) -> list[str]:
    """Split a comma separated keyword query into trimmed, non-empty terms."""
    if not query or not query.strip():
        raise InvalidQuery("Keywords are required")
    terms = [term.strip() for term in query.split(KEYWORD_DELIMITER)]
    terms = [term for term in terms if term]
    if not terms:
        raise InvalidQuery("No valid keywords provided")
    return terms


def normalize_url(url: str) -> str:
    """Canonical form of an article URL used as its dedup key."""
    if not url:
        return ""
    parsed = urlparse(url.strip())
    netloc = parsed.netloc.lower()
    if netloc.endswith(":80"):
        netloc = netloc[:-3]
    if netloc.endswith(":443"):
        netloc = netloc[:-4]
    clean_query = urlencode(sorted(parse_qsl(parsed.query, keep_blank_values=True)))
    clean_path = parsed.path.rstrip("/") or "/"
    return urlunparse(
        (
            parsed.scheme.lower(),
            netloc,
            clean_path,
            parsed.params,
            clean_query,
            "",
        )
    )


def recency_cutoff(recency_hours: int, now: datetime | None = None) -> str | None:
    """ISO timestamp of the oldest article to accept, or None when unrestricted."""
    if recency_hours <= 0:
        return None
    now = now or datetime.now(tz=timezone.utc)
    return (now - timedelta(hours=recency_hours)).isoformat(timespec="seconds")


def search_news(
    term: str,
    page: int,
    from_timestamp: str | None = None,
    sort_by: str = NEWS_SORT_BY,
    session: requests.Session | None = None,
) -> list[dict]:
    """
    Fetch one result page for one term.
    Raises UpstreamUnavailable on transport errors or a non-"ok" status.
    """
    params = {
        "q": term,
        "sortBy": sort_by,
        "page": str(page),
        "pageSize": str(NEWS_PAGE_SIZE),
        "language": NEWS_LANGUAGE,
        "apiKey": NEWS_API_KEY,
    }
    if from_timestamp:
        params["from"] = from_timestamp

    req = session or requests
    try:
        resp = req.get(f"{NEWS_API_BASE_URL}/everything", params=params, timeout=REQUEST_TIMEOUT_SECONDS)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        raise UpstreamUnavailable(f"search failed for '{term}' page {page}: {e}") from e

    status = data.get("status") if isinstance(data, dict) else None
    if status != "ok":
        message = data.get("message", "") if isinstance(data, dict) else ""
        raise UpstreamUnavailable(f"search returned status={status!r} for '{term}' page {page} {message}".strip())
    return data.get("articles") or []


def retrieve_articles(
    keyword_query: str,
    recency_hours: int,
    page_limit: int = PAGE_LIMIT,
    label: int = 0,
    sort_by: str = NEWS_SORT_BY,
) -> list[ArticleRecord]:
    """
    Retrieve articles for every term and page, deduplicated by URL.

    Per-page failures are logged and skipped; partial results are returned.
    Units run concurrently but are merged in (term, page) order, so an
    article first seen under an earlier term keeps that position.
    """
    terms = parse_keywords(keyword_query)
    from_timestamp = recency_cutoff(recency_hours)
    units = [(term, page) for term in terms for page in range(1, page_limit + 1)]
    logger.info(
        "[SEARCH] terms=%s pages=%s from=%s sort=%s",
        terms,
        page_limit,
        from_timestamp or "unrestricted",
        sort_by,
    )

    pages: dict[int, list[dict]] = {}
    session = build_session(pool_size=MAX_CONCURRENCY)
    try:
        with ThreadPoolExecutor(max_workers=MAX_CONCURRENCY) as executor:
            future_map = {
                executor.submit(search_news, term, page, from_timestamp, sort_by, session): idx
                for idx, (term, page) in enumerate(units)
            }
            for future, idx in future_map.items():
                term, page = units[idx]
                try:
                    pages[idx] = future.result()
                except UpstreamUnavailable as e:
                    logger.warning("[SEARCH] Skipping page %s for '%s': %s", page, term, e)
    finally:
        session.close()

    seen: set[str] = set()
    records: list[ArticleRecord] = []
    for idx in sorted(pages):
        for payload in pages[idx]:
            key = normalize_url(payload.get("url") or "")
            if not key or key in seen:
                continue
            seen.add(key)
            records.append(ArticleRecord.from_api(payload, label=label))

    logger.info("[SEARCH] Got %s unique articles from %s/%s pages", len(records), len(pages), len(units))
    return records
