"""Central configuration for the Press Room curation pipeline."""

import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


# --- News Search Config ---
NEWS_API_KEY = os.getenv("NEWS_API_KEY", "")
NEWS_API_BASE_URL = os.getenv("NEWS_API_BASE_URL", "https://newsapi.org/v2")
NEWS_LANGUAGE = os.getenv("NEWS_LANGUAGE", "en")
NEWS_SORT_BY = os.getenv("NEWS_SORT_BY", "popularity")
NEWS_PAGE_SIZE = _int_env("NEWS_PAGE_SIZE", 100)

# Pages requested per keyword term
PAGE_LIMIT = _int_env("PAGE_LIMIT", 4)
# Recency window of the candidate feed (hours). 0 disables the window.
RECENCY_HOURS = _int_env("RECENCY_HOURS", 48)
# Label stamped on records fetched for classifier training (operator unticks noise)
TRAINING_FEED_LABEL = _int_env("TRAINING_FEED_LABEL", 1)

# --- Curation Thresholds ---
VOLUME_THRESHOLD = _int_env("VOLUME_THRESHOLD", 200)
MIN_FRAGMENT_LENGTH = _int_env("MIN_FRAGMENT_LENGTH", 30)
MIN_CONTENT_LENGTH = _int_env("MIN_CONTENT_LENGTH", 300)
MAX_SELECTION = _int_env("MAX_SELECTION", 15)

# --- Classifier Service Config ---
CLASSIFIER_API_URL = os.getenv("CLASSIFIER_API_URL", "http://localhost:8000")
DEFAULT_CLASSIFIER_THRESHOLD = _float_env("DEFAULT_CLASSIFIER_THRESHOLD", 0.7)
SMART_FILTER_THRESHOLD = _float_env("SMART_FILTER_THRESHOLD", 0.5)
CLASSIFIER_TIMEOUT_SECONDS = _float_env("CLASSIFIER_TIMEOUT_SECONDS", 300)

# --- LLM Config (OpenAI-compatible endpoint) ---
LLM_API_KEY = os.getenv("OPENAI_API_KEY", "")
LLM_BASE_URL = os.getenv("LLM_BASE_URL", "") or None
EXTRACTION_MODEL = os.getenv("EXTRACTION_MODEL", "gpt-4o-2024-08-06")
POST_MODEL = os.getenv("POST_MODEL", "gpt-4")
LLM_TIMEOUT_SECONDS = _float_env("LLM_TIMEOUT_SECONDS", 120)
LLM_MIN_REQUEST_INTERVAL_SECONDS = _float_env("LLM_MIN_REQUEST_INTERVAL_SECONDS", 0.5)
LLM_RATE_LIMIT_BACKOFF_SECONDS = _float_env("LLM_RATE_LIMIT_BACKOFF_SECONDS", 10)
LLM_RATE_LIMIT_MAX_RETRIES = _int_env("LLM_RATE_LIMIT_MAX_RETRIES", 2)

# --- Drafting Config ---
DEFAULT_PLATFORM = os.getenv("DEFAULT_PLATFORM", "linkedin")
DEFAULT_VERSIONS = _int_env("DEFAULT_VERSIONS", 2)
MAX_VERSIONS = _int_env("MAX_VERSIONS", 4)

# --- Fetch / Runtime Config ---
MAX_CONCURRENCY = max(1, _int_env("MAX_CONCURRENCY", 4))
REQUEST_TIMEOUT_SECONDS = _float_env("REQUEST_TIMEOUT_SECONDS", 15)
RENDER_MODE = os.getenv("RENDER_MODE", "static")  # "static" (requests) | "dynamic" (Playwright)
SNAPSHOT_DIR = os.getenv("SNAPSHOT_DIR", "files")
OUTPUT_DIR = os.getenv("OUTPUT_DIR", "output")


# --- Default Prompts ---
DEFAULT_EXTRACTION_INSTRUCTION = (
    "You are a news outlet that has to select and filter information based on these topics: "
    '"Effects of Technology on Children", "Effects of Usage of Technology in People". '
    "The texts selected should be relevant for an outlet that wants to promote the aware usage "
    "of technology and protect people, and most of all children, from misuse. Present only "
    "information that can be interesting for conscious parents who want to educate their "
    "children and stay informed about the risks and opportunities of technology."
)

DEFAULT_POST_PROMPT = (
    "Write a post that encourages thoughtful engagement and reflection on how we consciously "
    "interact with technology. Write from the perspective of an open-minded parent and avid "
    "reader who works in the cleantech sector, is optimistic, and is good at reading why people "
    "act the way they do. Make the connections this person would make."
)


def validate_config() -> tuple[bool, list[str]]:
    """Check that the credentials a live run needs are present."""
    errors: list[str] = []
    if not NEWS_API_KEY:
        errors.append("NEWS_API_KEY is not set")
    if not LLM_API_KEY:
        errors.append("OPENAI_API_KEY is not set")
    if not CLASSIFIER_API_URL:
        errors.append("CLASSIFIER_API_URL is not set")
    if not 1 <= DEFAULT_VERSIONS <= MAX_VERSIONS:
        errors.append(f"DEFAULT_VERSIONS must be between 1 and {MAX_VERSIONS}")
    if RENDER_MODE not in ("static", "dynamic"):
        errors.append(f"RENDER_MODE must be 'static' or 'dynamic', got '{RENDER_MODE}'")
    return not errors, errors
