"""
Relevance classifier adapter.
Talks to the remote classifier service that learns relevance from the
operator's labelled dataset and scores fresh candidates.
"""

import logging

import requests

from config import CLASSIFIER_API_URL, CLASSIFIER_TIMEOUT_SECONDS, DEFAULT_CLASSIFIER_THRESHOLD
from src.errors import UpstreamUnavailable
from src.models import ArticleRecord
from src.scrapers.http_session import build_session

logger = logging.getLogger(__name__)


class ClassifierClient:
    """HTTP client for the `/train-classifier` and `/classify-articles` endpoints."""

    def __init__(self, base_url: str = CLASSIFIER_API_URL, session: requests.Session | None = None,
                 timeout: float = CLASSIFIER_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.session = session or build_session()
        self.timeout = timeout

    def _post(self, path: str, payload: dict) -> dict:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise UpstreamUnavailable(f"classifier call {path} failed: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamUnavailable(f"classifier call {path} returned {type(data).__name__}, expected object")
        return data

    def train(self, articles: list[ArticleRecord]) -> str:
        """Train on the labelled dataset; returns the service message."""
        logger.info("[CLASSIFIER] Training on %s articles (%s relevant)",
                    len(articles), sum(a.label for a in articles))
        data = self._post("/train-classifier", {"articles": [a.to_dict() for a in articles]})
        message = str(data.get("message", ""))
        logger.info("[CLASSIFIER] Train response: %s", message)
        return message

    def score(self, articles: list[ArticleRecord],
              threshold: float = DEFAULT_CLASSIFIER_THRESHOLD) -> list[ArticleRecord]:
        """
        Score candidates against `threshold`.
        Returns new records carrying the classifier label. The whole call
        fails if any returned label is not 0/1, so labels are never half applied.
        """
        logger.info("[CLASSIFIER] Scoring %s articles (threshold=%.2f)", len(articles), threshold)
        data = self._post(
            "/classify-articles",
            {"articles": [a.to_dict() for a in articles], "threshold": threshold},
        )
        classified = data.get("classified_articles")
        if not isinstance(classified, list):
            raise UpstreamUnavailable("classifier response has no 'classified_articles' list")

        if any(not isinstance(item, dict) or "label" not in item for item in classified):
            raise UpstreamUnavailable("classifier returned an article without a label")
        try:
            scored = [ArticleRecord.from_dict(item) for item in classified]
        except (ValueError, AttributeError, TypeError) as e:
            raise UpstreamUnavailable(f"classifier returned an invalid article: {e}") from e

        logger.info("[CLASSIFIER] %s/%s scored relevant", sum(a.label for a in scored), len(scored))
        return scored

    def close(self) -> None:
        self.session.close()
