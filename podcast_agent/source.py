from __future__ import annotations

import html
import logging
import re
from typing import Optional
from urllib.parse import quote, urlparse

import requests

from .config import SourceConfig
from .errors import (
    ContentNotFoundError,
    ContentTooShortError,
    ServiceUnavailableError,
    UnsupportedLanguageError,
)
from .types import INPUT_KIND_URL, SourceDocument, utc_now
from .validation import (
    detect_input_kind,
    extract_title_from_url,
    is_likely_english,
    normalize_wikipedia_url,
    sanitize_title,
    truncate_content,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "Wikipedia"


def clean_html(markup: str) -> str:
    """Reduce article HTML to plain prose."""
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", " ", markup, flags=re.DOTALL | re.IGNORECASE)
    text = re.sub(r"<[^>]*>", " ", text)
    text = html.unescape(text)
    text = re.sub(r"\[\d+\]", "", text)
    return re.sub(r"\s+", " ", text).strip()


class BaseSource:
    def fetch(self, value: str, input_kind: Optional[str] = None) -> SourceDocument:
        raise NotImplementedError


class WikipediaSource(BaseSource):
    """Fetch English Wikipedia articles through the Wikimedia REST API."""

    def __init__(self, config: SourceConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()
        self.base_url = config.api_base.rstrip("/")

    def fetch(self, value: str, input_kind: Optional[str] = None) -> SourceDocument:
        kind = input_kind or detect_input_kind(value)
        if kind == INPUT_KIND_URL:
            url = normalize_wikipedia_url(value.strip())
            self._check_language(url)
            return self.fetch_by_title(extract_title_from_url(url), url=url)
        return self.fetch_by_title(sanitize_title(value))

    def fetch_by_title(self, title: str, url: Optional[str] = None) -> SourceDocument:
        encoded = quote(title.replace(" ", "_"), safe="")
        logger.info("Fetching Wikipedia article '%s'", title)
        summary = self._get(f"{self.base_url}/page/summary/{encoded}", title).json()
        raw_html = self._get(f"{self.base_url}/page/html/{encoded}", title).text

        text = clean_html(raw_html)
        if len(text) < self.config.min_content_length:
            raise ContentTooShortError(len(text), self.config.min_content_length)
        language = summary.get("lang") or "en"
        if language != "en" or not is_likely_english(text):
            raise UnsupportedLanguageError(language if language != "en" else "unknown")
        text = truncate_content(text, self.config.max_content_length)

        document = SourceDocument(
            title=summary.get("title") or title,
            url=url or summary.get("content_urls", {}).get("desktop", {}).get("page", ""),
            text=text,
            summary=summary.get("extract", ""),
            word_count=len(text.split()),
            fetched_at=utc_now(),
        )
        logger.info("Fetched '%s' (%s words)", document.title, document.word_count)
        return document

    def _get(self, url: str, title: str) -> requests.Response:
        try:
            response = self.session.get(
                url,
                headers={"User-Agent": self.config.user_agent},
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Wikipedia request failed: %s", exc)
            raise ServiceUnavailableError(SERVICE_NAME, str(exc)) from exc
        if response.status_code == 404:
            raise ContentNotFoundError(title)
        if response.status_code >= 400:
            logger.warning("Wikipedia API error (HTTP %s) for %s", response.status_code, url)
            raise ServiceUnavailableError(SERVICE_NAME, f"HTTP {response.status_code}")
        return response

    def _check_language(self, url: str) -> None:
        host = urlparse(url).hostname or ""
        prefix = host.split(".")[0]
        if len(prefix) == 2 and prefix != "en":
            raise UnsupportedLanguageError(prefix)


def build_source(config: SourceConfig, session: Optional[requests.Session] = None) -> BaseSource:
    return WikipediaSource(config=config, session=session)
