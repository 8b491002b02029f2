"""Dataset and post export (downloadable artifacts for the operator)."""

import json
import logging
import os
from datetime import datetime

from src.filters.keywords import highlight_keywords
from src.models import ArticleRecord, Platform

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d-%H%M%S-%f")


def _unique_path(output_dir: str, prefix: str, suffix: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, f"{prefix}-{_timestamp()}{suffix}")
    counter = 1
    while os.path.exists(path):
        path = os.path.join(output_dir, f"{prefix}-{_timestamp()}-{counter}{suffix}")
        counter += 1
    return path


def export_dataset(articles: list[ArticleRecord], output_dir: str = "output") -> str:
    """Write the article collection as a JSON list; returns the file path."""
    path = _unique_path(output_dir, "dataset", ".json")
    # atomic: the final path only ever holds a complete dataset
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump([a.to_dict() for a in articles], f, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)
    logger.info("[EXPORT] Dataset with %s articles saved to %s", len(articles), path)
    return path


def load_dataset(path: str) -> list[ArticleRecord]:
    """Read a dataset export back into records. Invalid labels raise ValueError."""
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)
    if not isinstance(payload, list):
        raise ValueError(f"{path}: expected a JSON list of articles")
    records = [ArticleRecord.from_dict(item) for item in payload]
    logger.info("[EXPORT] Loaded %s articles from %s", len(records), path)
    return records


def render_review_markdown(articles: list[ArticleRecord], keywords: list[str], title: str) -> str:
    """Review list with keyword hits highlighted and the label as a checkbox."""
    lines = [
        f"# {title}\n",
        f"> **{len(articles)}** articles, **{sum(a.label for a in articles)}** marked relevant\n",
        "---\n",
    ]
    for article in articles:
        box = "x" if article.label == 1 else " "
        lines.append(f"- [{box}] [{highlight_keywords(article.title, keywords)}]({article.url})")
        lines.append(f"  Source: {article.source_name or 'unknown'} | Published: {article.published_at}")
        if article.description:
            lines.append(f"  {highlight_keywords(article.description, keywords)}")
        lines.append("")
    return "\n".join(lines)


def save_review_markdown(articles: list[ArticleRecord], keywords: list[str], title: str,
                         output_dir: str = "output") -> str:
    path = _unique_path(output_dir, "review", ".md")
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_review_markdown(articles, keywords, title))
    logger.info("[EXPORT] Review list saved to %s", path)
    return path


def save_post_markdown(text: str, platform: Platform, excerpts: list[str],
                       output_dir: str = "output") -> str:
    """Save the chosen post together with the excerpts it was built from."""
    path = _unique_path(output_dir, "post", ".md")
    lines = [
        f"# Post ({platform.value})\n",
        text.strip(),
        "\n---\n",
        "## Excerpts\n",
    ]
    lines.extend(f"- {excerpt}" for excerpt in excerpts)
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    logger.info("[EXPORT] Post saved to %s", path)
    return path
