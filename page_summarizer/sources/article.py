"""Readable-text extraction for ordinary web pages."""

import logging
import re
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup
from readability import Document
from readability.readability import Unparseable

from ..constants import ERRORS, MAX_CONTENT_LENGTH, MIN_CONTENT_LENGTH

logger = logging.getLogger(__name__)

CONTENT_SELECTORS = (
    "article",
    '[role="main"]',
    "main",
    ".article-content",
    ".post-content",
    ".entry-content",
    ".content-body",
    "#main-content",
)

_WHITESPACE = re.compile(r"\s+")


@dataclass
class ExtractionResult:
    """Extracted article text, or the reason there is none."""

    success: bool
    content: str = ""
    title: str = ""
    error: str | None = None


def text_length(value: Any) -> int:
    return len(value) if isinstance(value, str) else 0


def is_content_too_short(text: Any, min_length: int = MIN_CONTENT_LENGTH) -> bool:
    return text_length(text) < min_length


def _collapse(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _text_of(soup_or_tag: Any) -> str:
    return _collapse(soup_or_tag.get_text(" "))


def _with_readability(html: str, url: str) -> ExtractionResult | None:
    try:
        doc = Document(html, url=url)
        summary_html = doc.summary(html_partial=True)
        title = doc.short_title() or ""
    except (Unparseable, ValueError) as e:
        logger.debug("Readability failed for %s: %s", url, e)
        return None

    text = _text_of(BeautifulSoup(summary_html, "lxml"))
    if is_content_too_short(text):
        logger.debug("Readability output too short for %s (%d chars)", url, len(text))
        return None
    return ExtractionResult(success=True, content=text, title=title)


def _with_selectors(html: str) -> ExtractionResult | None:
    soup = BeautifulSoup(html, "lxml")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    title = soup.title.get_text(strip=True) if soup.title else ""

    for selector in CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            text = _text_of(element)
            if len(text) > MIN_CONTENT_LENGTH:
                return ExtractionResult(success=True, content=text, title=title)

    if soup.body is not None:
        text = _text_of(soup.body)
        if len(text) > MIN_CONTENT_LENGTH:
            return ExtractionResult(success=True, content=text, title=title)
    return None


def extract_content(html: str | None, url: str = "") -> ExtractionResult:
    """
    Extract the main readable text of a page.

    Readability runs first; common article containers and finally the
    whole body are the fallback. Text longer than ``MAX_CONTENT_LENGTH``
    is truncated with a trailing ellipsis.

    Args:
        html: Raw page HTML
        url: Page URL, used to resolve relative links

    Returns:
        ExtractionResult with ``success`` False and an ``error`` message
        when nothing long enough could be extracted
    """
    if is_content_too_short(html):
        return ExtractionResult(success=False, error=ERRORS["CONTENT_TOO_SHORT"])

    result = _with_readability(html, url) or _with_selectors(html)
    if result is None:
        return ExtractionResult(success=False, error=ERRORS["CONTENT_EXTRACTION_FAILED"])

    if is_content_too_short(result.content):
        return ExtractionResult(success=False, error=ERRORS["CONTENT_TOO_SHORT"])
    if len(result.content) > MAX_CONTENT_LENGTH:
        result.content = result.content[:MAX_CONTENT_LENGTH] + "..."
    return result
