"""
Site-specific extractors.

Some sites (forums, issue trackers) defeat generic main-content scoring.
A site extractor builds the article HTML straight from the page structure
instead. Subclasses implement :meth:`BaseExtractor.can_extract`,
:meth:`BaseExtractor.extract` and :attr:`BaseExtractor.site_name`.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog
from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from pagelift.protocols import ExtractedMetadata
from pagelift.utils.text import normalize_whitespace

logger = structlog.get_logger(__name__)

TAG_PATTERN = re.compile(r"<[^>]*>")


@dataclass(frozen=True)
class ExtractorMetadata:
    title: Optional[str] = None
    author: Optional[str] = None
    site_name: Optional[str] = None
    description: Optional[str] = None
    published: Optional[str] = None
    image: Optional[str] = None


@dataclass(frozen=True)
class ExtractorResult:
    content: str
    text_content: str
    metadata: ExtractorMetadata


class BaseExtractor(ABC):
    """Base class for site-specific extractors."""

    def __init__(
        self,
        soup: BeautifulSoup,
        url: str,
        schema_org_data: Optional[Dict[str, Any]] = None,
        existing_metadata: Optional[ExtractedMetadata] = None,
    ) -> None:
        self.soup = soup
        self.url = url
        self.schema_org_data = schema_org_data
        self.existing_metadata = existing_metadata

    @property
    @abstractmethod
    def site_name(self) -> str:
        """Display name reported as the article's site."""

    @abstractmethod
    def can_extract(self) -> bool:
        """Whether the page has the structure this extractor expects."""

    @abstractmethod
    def extract(self) -> ExtractorResult:
        """Build the article HTML, text and metadata."""

    # --- helpers ----------------------------------------------------------

    def select_one(self, selector: str, root: Optional[Tag] = None) -> Optional[Tag]:
        try:
            return (root or self.soup).select_one(selector)
        except (SelectorSyntaxError, NotImplementedError, ValueError):
            return None

    def select(self, selector: str, root: Optional[Tag] = None) -> List[Tag]:
        try:
            return (root or self.soup).select(selector)
        except (SelectorSyntaxError, NotImplementedError, ValueError):
            return []

    @staticmethod
    def text_of(element: Optional[Tag]) -> str:
        return element.get_text().strip() if element is not None else ""

    @staticmethod
    def inner_html(element: Optional[Tag]) -> str:
        if element is None:
            return ""
        return element.decode_contents().strip()

    @staticmethod
    def attr(element: Optional[Tag], name: str) -> Optional[str]:
        if element is None:
            return None
        value = element.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        return value or None

    @staticmethod
    def strip_html(html: str) -> str:
        return normalize_whitespace(TAG_PATTERN.sub(" ", html))

    @staticmethod
    def format_date(value: Optional[str]) -> str:
        """ISO-ish timestamp -> ``January 5, 2024``; unparseable input keeps its date part."""
        if not value:
            return ""
        try:
            date = datetime.fromisoformat(value.strip())
        except ValueError:
            return value.split("T")[0] or value
        return f"{date:%B} {date.day}, {date.year}"


def nest_by_depth(items: Iterable[Tuple[int, str]]) -> str:
    """
    Render ``(depth, html)`` pairs from a flat thread as nested blockquotes,
    one blockquote level per depth step.
    """
    parts: List[str] = []
    open_levels = 0
    for depth, html in items:
        target = max(depth, 0) + 1
        while open_levels > target:
            parts.append("</blockquote>")
            open_levels -= 1
        if open_levels == target:
            # sibling of the previous item at this depth
            parts.append("</blockquote>")
            open_levels -= 1
        while open_levels < target:
            parts.append("<blockquote>")
            open_levels += 1
        parts.append(html)
    parts.extend("</blockquote>" for _ in range(open_levels))
    return "".join(parts)
