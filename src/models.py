"""Article and draft data models used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from src.errors import DraftAlreadySelected, InvalidTransition

VALID_LABELS = (0, 1)


def _check_label(value: object) -> int:
    # bool is an int subclass; keep labels strictly 0/1 ints
    if isinstance(value, bool) or value not in VALID_LABELS:
        raise ValueError(f"label must be 0 or 1, got {value!r}")
    return int(value)


@dataclass
class ArticleRecord:
    """
    One candidate news item with its relevance label.
    Identity is the `url`; `full_content` is only filled by the extractor.
    """
    url: str
    title: str
    description: str | None = None
    content: str | None = None
    source_name: str | None = None
    published_at: str = ""
    label: int = 0
    full_content: str | None = None

    def __post_init__(self) -> None:
        self.label = _check_label(self.label)

    def set_label(self, value: int) -> None:
        self.label = _check_label(value)

    def toggle_label(self) -> None:
        self.label = 0 if self.label == 1 else 1

    def with_content(self, full_content: str) -> ArticleRecord:
        return replace(self, full_content=full_content)

    @classmethod
    def from_api(cls, payload: dict, label: int = 0) -> ArticleRecord:
        """Build a record from a search-provider article dict."""
        source = payload.get("source") or {}
        return cls(
            url=(payload.get("url") or "").strip(),
            title=(payload.get("title") or "").strip(),
            description=payload.get("description"),
            content=payload.get("content"),
            source_name=source.get("name") if isinstance(source, dict) else None,
            published_at=payload.get("publishedAt") or "",
            label=label,
        )

    @classmethod
    def from_dict(cls, payload: dict) -> ArticleRecord:
        """Inverse of `to_dict`; the label is taken from the payload."""
        record = cls.from_api(payload, label=payload.get("label", 0))
        if payload.get("fullContent") is not None:
            record.full_content = payload["fullContent"]
        return record

    def to_dict(self) -> dict:
        data = {
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "source": {"name": self.source_name},
            "publishedAt": self.published_at,
            "label": self.label,
        }
        if self.full_content is not None:
            data["fullContent"] = self.full_content
        return data


class Platform(Enum):
    """Target platform families for generated posts."""
    LINKEDIN = "linkedin"
    TWITTER = "twitter"

    @classmethod
    def from_string(cls, value: str) -> Platform:
        normalized = (value or "").strip().lower()
        for platform in cls:
            if platform.value == normalized:
                return platform
        raise ValueError(f"Unknown platform: {value}")


@dataclass
class DraftSet:
    """
    The drafts of one generation round.
    Choosing a draft keeps only that one; after that the text is editable.
    """
    platform: Platform
    drafts: list[str] = field(default_factory=list)
    selected_index: int | None = None

    @property
    def is_selected(self) -> bool:
        return self.selected_index is not None

    def choose(self, index: int) -> str:
        if self.selected_index is not None:
            if index == self.selected_index:
                return self.drafts[0]
            raise DraftAlreadySelected(
                f"draft {self.selected_index} was already chosen for this round"
            )
        if not 0 <= index < len(self.drafts):
            raise IndexError(f"draft index {index} out of range (0..{len(self.drafts) - 1})")
        self.drafts = [self.drafts[index]]
        self.selected_index = index
        return self.drafts[0]

    def edit(self, text: str) -> str:
        if self.selected_index is None:
            raise InvalidTransition("choose a draft before editing it")
        self.drafts = [text]
        return text

    @property
    def selected_text(self) -> str | None:
        return self.drafts[0] if self.selected_index is not None else None
