"""Keyword helpers for the article review list."""

import re


def review_terms(keyword_query: str) -> list[str]:
    """Lower-cased terms used for highlighting; never raises on empty input."""
    return [k.strip().lower() for k in (keyword_query or "").split(",") if k.strip()]


def highlight_keywords(text: str | None, keywords: list[str], marker: str = "**") -> str:
    """Wrap every case-insensitive keyword hit in `marker` (Markdown bold by default)."""
    terms = [k for k in keywords if k]
    if not text or not terms:
        return text or ""
    pattern = re.compile("|".join(re.escape(k) for k in sorted(terms, key=len, reverse=True)), re.IGNORECASE)
    return pattern.sub(lambda m: f"{marker}{m.group(0)}{marker}", text)
