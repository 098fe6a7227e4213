"""Checks on caller-supplied input before a run starts."""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import unquote

from .errors import InvalidInputError
from .types import INPUT_KIND_TITLE, INPUT_KIND_URL

WIKIPEDIA_URL_PATTERN = re.compile(r"^https?://([a-z]{2}\.)?(?:m\.)?wikipedia\.org/wiki/[^/]+$", re.IGNORECASE)
ENGLISH_WIKIPEDIA_PATTERN = re.compile(r"^https?://(en\.)?(m\.)?wikipedia\.org", re.IGNORECASE)
MAX_TITLE_LENGTH = 256
COMMON_ENGLISH_WORDS = {"the", "is", "was", "are", "and", "of", "to", "in", "a", "for"}


def is_url(value: str) -> bool:
    return value.strip().lower().startswith("http")


def is_wikipedia_url(value: str) -> bool:
    return bool(WIKIPEDIA_URL_PATTERN.match(value.strip()))


def detect_input_kind(value: str) -> str:
    return INPUT_KIND_URL if is_url(value) else INPUT_KIND_TITLE


def wikipedia_url_error(url: str) -> Optional[str]:
    trimmed = url.strip()
    if not trimmed:
        return "URL cannot be empty"
    if not is_url(trimmed):
        return "Input does not appear to be a URL"
    if not is_wikipedia_url(trimmed):
        return "URL must be a valid Wikipedia article URL (e.g., https://en.wikipedia.org/wiki/Article_Name)"
    if not ENGLISH_WIKIPEDIA_PATTERN.match(trimmed):
        return "Only English Wikipedia articles are supported"
    return None


def title_error(title: str) -> Optional[str]:
    trimmed = title.strip()
    if not trimmed:
        return "Article title cannot be empty"
    if len(trimmed) > MAX_TITLE_LENGTH:
        return f"Article title is too long (max {MAX_TITLE_LENGTH} characters)"
    if trimmed.isdigit():
        return "Article title cannot be just numbers"
    return None


def validate_input(value: Optional[str], input_kind: Optional[str] = None) -> str:
    """Validate a URL or title and return the resolved input kind.

    Raises InvalidInputError with a human readable reason.
    """
    trimmed = (value or "").strip()
    if not trimmed:
        raise InvalidInputError("Input is required")
    if input_kind not in (None, INPUT_KIND_URL, INPUT_KIND_TITLE):
        raise InvalidInputError(f"Unsupported input type: {input_kind}", {"type": input_kind})

    kind = input_kind or detect_input_kind(trimmed)
    error = wikipedia_url_error(trimmed) if kind == INPUT_KIND_URL else title_error(trimmed)
    if error:
        raise InvalidInputError(error, {"input": trimmed, "type": kind})
    return kind


def extract_title_from_url(url: str) -> str:
    match = re.search(r"/wiki/([^/?#]+)", url)
    if not match:
        raise InvalidInputError("Could not extract article title from URL", {"input": url})
    return unquote(match.group(1).replace("_", " "))


def sanitize_title(title: str) -> str:
    title = re.sub(r"\s+", " ", title.strip())
    return re.sub(r'[<>:"/\\|?*]', "", title)


def normalize_wikipedia_url(url: str) -> str:
    url = re.sub(r"//[a-z]{2}\.m\.wikipedia", "//en.wikipedia", url)
    url = url.replace("//m.wikipedia", "//en.wikipedia")
    return url.replace("//wikipedia.org", "//en.wikipedia.org")


def is_likely_english(text: str) -> bool:
    words = text.lower().split()[:100]
    return sum(1 for word in words if word in COMMON_ENGLISH_WORDS) >= 5


def truncate_content(text: str, max_length: int) -> str:
    """Cut ``text`` to ``max_length``, preferring a sentence boundary near the end."""
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_period = truncated.rfind(".")
    if last_period > max_length * 0.8:
        return truncated[: last_period + 1]
    return truncated + "..."
