"""
Full-text extractor for selected articles.
Fetches each article page, drops script/style nodes and keeps only the
substantive paragraph and heading text.
"""

import json
import logging
import os
import re
import time
from concurrent.futures import ThreadPoolExecutor

import requests
from bs4 import BeautifulSoup, NavigableString, Tag

from config import (
    MAX_CONCURRENCY,
    MIN_FRAGMENT_LENGTH,
    RENDER_MODE,
    REQUEST_TIMEOUT_SECONDS,
    SNAPSHOT_DIR,
)
from src.errors import UpstreamUnavailable
from src.models import ArticleRecord
from src.scrapers.http_session import HEADERS, build_session

logger = logging.getLogger(__name__)

BLOCK_TAGS = {"p", "h1", "h2", "h3", "h4", "h5", "h6"}
STRIP_TAGS = ("script", "style", "noscript")


def _clean_text(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def _collect_blocks(root: Tag, texts: list[str]) -> None:
    # explicit stack: page nesting depth is unbounded
    stack = list(reversed(root.contents))
    while stack:
        node = stack.pop()
        if isinstance(node, NavigableString) or not isinstance(node, Tag):
            continue
        if node.name in BLOCK_TAGS:
            text = _clean_text(node.get_text(" "))
            if text:
                texts.append(text)
        else:
            stack.extend(reversed(node.contents))


def extract_text(html: str, min_fragment_length: int = MIN_FRAGMENT_LENGTH) -> str:
    """
    Extract the prose of a page.
    Text is taken only from <p> and <h1>-<h6> elements; fragments of
    `min_fragment_length` characters or fewer are treated as navigation noise.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(STRIP_TAGS):
        tag.decompose()

    root = soup.body or soup
    texts: list[str] = []
    _collect_blocks(root, texts)
    return " ".join(t for t in texts if len(t) > min_fragment_length)


def _fetch_static(url: str, session: requests.Session | None = None) -> str:
    req = session or requests
    try:
        resp = req.get(url, headers=HEADERS, timeout=REQUEST_TIMEOUT_SECONDS)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise UpstreamUnavailable(f"fetch failed for {url}: {e}") from e
    return resp.text


def _fetch_dynamic(url: str) -> str:
    """Render a JavaScript-heavy page with headless Chromium."""
    from playwright.sync_api import sync_playwright

    try:
        with sync_playwright() as p:
            browser = p.chromium.launch(headless=True)
            try:
                page = browser.new_page()
                page.goto(url, wait_until="domcontentloaded", timeout=int(REQUEST_TIMEOUT_SECONDS * 1000))
                return page.content()
            finally:
                browser.close()
    except Exception as e:
        raise UpstreamUnavailable(f"render failed for {url}: {e}") from e


def fetch_page(url: str, session: requests.Session | None = None, render_mode: str = RENDER_MODE) -> str:
    """Return the page HTML. Raises UpstreamUnavailable on failure."""
    if not url:
        raise UpstreamUnavailable("article has no URL")
    if render_mode == "dynamic":
        return _fetch_dynamic(url)
    return _fetch_static(url, session=session)


def _extract_one(
    article: ArticleRecord,
    session: requests.Session,
    render_mode: str,
    min_fragment_length: int,
) -> ArticleRecord:
    try:
        html = fetch_page(article.url, session=session, render_mode=render_mode)
        content = extract_text(html, min_fragment_length=min_fragment_length)
    except UpstreamUnavailable as e:
        logger.warning("[EXTRACT] %s", e)
        content = ""
    logger.info("[EXTRACT] %s chars from %s", len(content), article.url)
    return article.with_content(content)


def write_snapshot(articles: list[ArticleRecord], snapshot_dir: str) -> str:
    """Write a new timestamped JSON snapshot of extracted articles."""
    os.makedirs(snapshot_dir, exist_ok=True)
    stamp = int(time.time() * 1000)
    path = os.path.join(snapshot_dir, f"extracted-{stamp}.json")
    while os.path.exists(path):
        stamp += 1
        path = os.path.join(snapshot_dir, f"extracted-{stamp}.json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump([a.to_dict() for a in articles], f, ensure_ascii=False, indent=2)
    logger.info("[EXTRACT] Snapshot saved to %s", path)
    return path


def extract_content(
    articles: list[ArticleRecord],
    snapshot_dir: str | None = SNAPSHOT_DIR,
    render_mode: str = RENDER_MODE,
    min_fragment_length: int = MIN_FRAGMENT_LENGTH,
) -> list[ArticleRecord]:
    """
    Fetch and extract full text for every article.
    Returns copies in input order; an article whose page could not be
    fetched comes back with empty `full_content`.
    """
    logger.info("[EXTRACT] Extracting %s articles (render=%s)", len(articles), render_mode)
    if not articles:
        return []

    # one headless Chromium at a time
    workers = 1 if render_mode == "dynamic" else MAX_CONCURRENCY
    session = build_session(pool_size=workers)
    try:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(_extract_one, article, session, render_mode, min_fragment_length)
                for article in articles
            ]
            results = [future.result() for future in futures]
    finally:
        session.close()

    if snapshot_dir:
        try:
            write_snapshot(results, snapshot_dir)
        except OSError as e:
            logger.warning("[EXTRACT] Could not write snapshot: %s", e)

    filled = sum(1 for a in results if a.full_content)
    logger.info("[EXTRACT] %s/%s articles yielded content", filled, len(articles))
    return results
