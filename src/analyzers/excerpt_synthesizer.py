"""
Excerpt synthesizer.
Asks the LLM for self-contained facts, quotes and statistics from each
article's full text and merges them into one ordered excerpt list.
"""

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor

from config import EXTRACTION_MODEL, MAX_CONCURRENCY, MIN_CONTENT_LENGTH
from src.analyzers.llm_client import complete
from src.errors import MalformedGenerationOutput, UpstreamUnavailable
from src.models import ArticleRecord

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)


def decode_string_array(text: str) -> list[str]:
    """
    Decode a model response that must be a JSON array of strings.
    A surrounding ```json fence is removed first. Raises
    MalformedGenerationOutput for anything else; nothing is partially kept.
    """
    raw = (text or "").replace("\ufeff", "").strip()
    if not raw:
        raise MalformedGenerationOutput("empty response text")

    fenced = _FENCE_RE.match(raw)
    if fenced:
        raw = fenced.group(1).strip()

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedGenerationOutput(
            f"{e.msg} at line {e.lineno}, column {e.colno} (char {e.pos})"
        ) from e

    if not isinstance(parsed, list):
        raise MalformedGenerationOutput(f"top-level type is {type(parsed).__name__}, expected array")
    if not all(isinstance(item, str) for item in parsed):
        raise MalformedGenerationOutput("array contains non-string items")
    return parsed


def parse_excerpts(text: str) -> list[str]:
    """Like `decode_string_array`, but a malformed response yields []."""
    try:
        return decode_string_array(text)
    except MalformedGenerationOutput as e:
        logger.warning("[LLM] Dropping malformed excerpt response: %s", e)
        return []


def build_extraction_prompt(instruction: str, content: str) -> str:
    return (
        "You are a helpful assistant.\n"
        f"{instruction}\n"
        "Avoid texts that may promote specific products of a specific brand.\n"
        "Extract interesting quotes, facts, novel ideas and statistics from the given article "
        "content and return them as a strictly valid JSON array of strings.\n"
        "Every item must explain any specific term it uses and name the survey or source the "
        "information comes from, so that every item can stand on its own.\n"
        "Return no other text.\n\n"
        f"Article content:\n{content}"
    )


def _synthesize_one(article: ArticleRecord, instruction: str) -> list[str]:
    prompt = build_extraction_prompt(instruction, article.full_content or "")
    try:
        raw = complete(prompt, model=EXTRACTION_MODEL)
    except UpstreamUnavailable as e:
        logger.warning("[LLM] Extraction failed for %s: %s", article.url, e)
        return []
    excerpts = parse_excerpts(raw)
    logger.info("[LLM] %s excerpts from %s", len(excerpts), article.url)
    return excerpts


def synthesize_excerpts(
    articles: list[ArticleRecord],
    instruction: str,
    min_content_length: int = MIN_CONTENT_LENGTH,
) -> list[str]:
    """
    Extract excerpts from every article with enough content.
    Articles under `min_content_length` characters are skipped. Per-article
    lists are concatenated in article order; duplicates across articles are kept.
    """
    qualifying = [a for a in articles if len(a.full_content or "") >= min_content_length]
    skipped = len(articles) - len(qualifying)
    logger.info(
        "[LLM] Synthesizing excerpts from %s articles (%s skipped under %s chars)",
        len(qualifying),
        skipped,
        min_content_length,
    )
    if not qualifying:
        return []

    with ThreadPoolExecutor(max_workers=MAX_CONCURRENCY) as executor:
        futures = [executor.submit(_synthesize_one, article, instruction) for article in qualifying]
        per_article = [future.result() for future in futures]

    excerpts: list[str] = []
    for items in per_article:
        excerpts.extend(items)
    logger.info("[LLM] Extracted %s excerpts in total", len(excerpts))
    return excerpts


def move_excerpt(excerpts: list[str], index: int, direction: int) -> list[str]:
    """Move one excerpt up (-1) or down (+1). Moving past either end is a no-op."""
    if not 0 <= index < len(excerpts):
        raise IndexError(f"excerpt index {index} out of range")
    target = index + direction
    if not 0 <= target < len(excerpts):
        return list(excerpts)
    return reorder_excerpt(excerpts, index, target)


def reorder_excerpt(excerpts: list[str], source: int, destination: int) -> list[str]:
    """Drag-and-drop move: take the item at `source` and insert it at `destination`."""
    if not 0 <= source < len(excerpts) or not 0 <= destination < len(excerpts):
        raise IndexError(f"excerpt index out of range ({source} -> {destination})")
    items = list(excerpts)
    item = items.pop(source)
    items.insert(destination, item)
    return items


def remove_excerpt(excerpts: list[str], index: int) -> list[str]:
    if not 0 <= index < len(excerpts):
        raise IndexError(f"excerpt index {index} out of range")
    return [item for i, item in enumerate(excerpts) if i != index]
