"""
Main-content extraction with readability-lxml.

The document handed to readability is a copy of the pre-cleaned page with
hidden elements removed and the byline lifted out, so neither ends up in the
article body.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from typing import Optional

import structlog
from bs4 import BeautifulSoup, Tag
from readability import Document
from readability.readability import Unparseable

from pagelift.config.config import ReadabilityConfig
from pagelift.utils.text import html_to_text, normalize_whitespace

from .readerable import class_and_id, is_probably_visible

logger = structlog.get_logger(__name__)

BYLINE = re.compile(r"byline|author|dateline|writtenby|p-author", re.IGNORECASE)
MAX_BYLINE_LENGTH = 100
NO_TITLE = "[no-title]"


@dataclass(frozen=True)
class ScoredArticle:
    title: str
    content: str
    text_content: str
    excerpt: str
    byline: Optional[str]
    length: int


def _is_byline(element: Tag) -> bool:
    rel = element.get("rel") or []
    itemprop = str(element.get("itemprop") or "")
    if "author" not in rel and "author" not in itemprop and not BYLINE.search(class_and_id(element)):
        return False
    return 0 < len(element.get_text().strip()) < MAX_BYLINE_LENGTH


def _take_byline(doc: BeautifulSoup) -> Optional[str]:
    for element in doc.body.find_all(True) if doc.body else []:
        if element.decomposed or not _is_byline(element):
            continue
        byline = normalize_whitespace(element.get_text())
        element.decompose()
        return byline
    return None


def _drop_hidden(doc: BeautifulSoup) -> int:
    removed = 0
    for element in doc.find_all(True):
        if element.decomposed or element.name in ("html", "body"):
            continue
        if not is_probably_visible(element):
            element.decompose()
            removed += 1
    return removed


def _first_paragraph(content_html: str) -> str:
    paragraph = BeautifulSoup(content_html, "lxml").find("p")
    return normalize_whitespace(paragraph.get_text()) if paragraph is not None else ""


class ContentScorer:
    """Finds the main article subtree of a document using readability-lxml."""

    def __init__(self, config: Optional[ReadabilityConfig] = None) -> None:
        self.config = config or ReadabilityConfig()

    def parse(self, soup: BeautifulSoup) -> Optional[ScoredArticle]:
        """
        Extract the article from ``soup`` (left untouched).

        Returns:
            The scored article, possibly with empty text when nothing looked
            like content, or None when the document has no body or readability
            cannot parse it.
        """
        doc = copy.copy(soup)
        if doc.body is None:
            return None
        hidden = _drop_hidden(doc)
        byline = _take_byline(doc)

        document = Document(
            str(doc),
            min_text_length=self.config.min_text_length,
            retry_length=self.config.char_threshold,
        )
        try:
            content = document.summary(html_partial=True)
            title = document.short_title() or document.title()
        except Unparseable as e:
            logger.info("Readability could not parse document", error=str(e))
            return None

        text = html_to_text(content)
        logger.debug("Readability summary built", length=len(text), hidden_removed=hidden, byline=byline)
        return ScoredArticle(
            title="" if title == NO_TITLE else normalize_whitespace(title),
            content=content,
            text_content=text,
            excerpt=_first_paragraph(content),
            byline=byline,
            length=len(text),
        )

    @staticmethod
    def article_title(html: str) -> str:
        """Document title with site-name decorations removed."""
        document = Document(html)
        title = document.short_title() or document.title()
        return "" if title == NO_TITLE else normalize_whitespace(title)
