"""
LLM client module.
Thin wrapper around an OpenAI-compatible chat endpoint: lazy client,
global request throttle and 429 backoff. Callers get plain text back.
"""

import logging
import threading
import time

from openai import OpenAI

from config import (
    LLM_API_KEY,
    LLM_BASE_URL,
    LLM_MIN_REQUEST_INTERVAL_SECONDS,
    LLM_RATE_LIMIT_BACKOFF_SECONDS,
    LLM_RATE_LIMIT_MAX_RETRIES,
    LLM_TIMEOUT_SECONDS,
    POST_MODEL,
)
from src.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

_client: OpenAI | None = None
_client_lock = threading.Lock()
_rate_lock = threading.Lock()
_last_request_ts = 0.0


def _get_client() -> OpenAI:
    """Lazy-init API client."""
    global _client
    with _client_lock:
        if _client is None:
            if not LLM_API_KEY:
                raise UpstreamUnavailable("OPENAI_API_KEY is not set.")
            _client = OpenAI(api_key=LLM_API_KEY, base_url=LLM_BASE_URL, max_retries=0)
    return _client


def _throttle() -> None:
    global _last_request_ts
    with _rate_lock:
        now = time.monotonic()
        wait_s = LLM_MIN_REQUEST_INTERVAL_SECONDS - (now - _last_request_ts)
        if wait_s > 0:
            time.sleep(wait_s)
        _last_request_ts = time.monotonic()


def _is_rate_limited(exc: Exception) -> bool:
    msg = str(exc).lower()
    return "429" in msg or "too many requests" in msg or "rate limit" in msg


def complete(prompt: str, model: str = POST_MODEL) -> str:
    """
    Send a single user prompt and return the stripped response text.
    Raises UpstreamUnavailable when the call fails or returns nothing.
    """
    client = _get_client()

    for attempt in range(LLM_RATE_LIMIT_MAX_RETRIES + 1):
        _throttle()
        try:
            response = client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                timeout=LLM_TIMEOUT_SECONDS,
            )
        except Exception as e:
            if _is_rate_limited(e) and attempt < LLM_RATE_LIMIT_MAX_RETRIES:
                backoff = LLM_RATE_LIMIT_BACKOFF_SECONDS * (2 ** attempt)
                logger.warning(
                    "[LLM] 429 rate limit, backoff %.1fs then retry (%s/%s)",
                    backoff,
                    attempt + 1,
                    LLM_RATE_LIMIT_MAX_RETRIES,
                )
                time.sleep(backoff)
                continue
            logger.error("[LLM] API call error (model=%s): %s", model, e)
            raise UpstreamUnavailable(f"generation call failed: {e}") from e

        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None)
        text = (content or "").strip()
        if not text:
            finish_reason = getattr(choices[0], "finish_reason", "unknown") if choices else "no choices"
            raise UpstreamUnavailable(f"empty response from model (finish_reason={finish_reason})")

        preview = text[:200]
        suffix = "..." if len(text) > 200 else ""
        logger.debug("[LLM] Raw response (%s chars): %s%s", len(text), preview, suffix)
        return text

    raise UpstreamUnavailable("generation call exhausted rate-limit retries")
