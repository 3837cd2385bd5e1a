"""
Structured data parsers: JSON-LD (Schema.org) and meta tags (Open Graph,
Twitter Cards, plain ``<meta name>``).
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

import structlog
from bs4 import BeautifulSoup

logger = structlog.get_logger(__name__)

ARTICLE_TYPES = ("Article", "NewsArticle", "BlogPosting", "WebPage", "Report", "ScholarlyArticle")


class SchemaOrgParser:
    """Parser for Schema.org JSON-LD blocks."""

    @staticmethod
    def parse_json_ld(soup: BeautifulSoup) -> List[Dict[str, Any]]:
        """Every JSON-LD object on the page, top-level arrays flattened."""
        blocks: List[Dict[str, Any]] = []
        for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
            text = script.string if script.string is not None else script.get_text()
            text = (text or "").strip()
            if not text:
                continue
            try:
                data = json.loads(text)
            except json.JSONDecodeError as e:
                logger.warning("Invalid JSON-LD block", error=str(e))
                continue
            items = data if isinstance(data, list) else [data]
            blocks.extend(item for item in items if isinstance(item, dict))
        return blocks

    @staticmethod
    def select_primary(blocks: Sequence[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """
        The block describing the article: the first whose ``@type`` names an
        article type (types checked in priority order), else the first block.
        """
        if not blocks:
            return None
        if len(blocks) == 1:
            return blocks[0]
        for article_type in ARTICLE_TYPES:
            for block in blocks:
                block_type = block.get("@type")
                if isinstance(block_type, list):
                    if article_type in block_type:
                        return block
                elif block_type == article_type:
                    return block
        return blocks[0]

    @classmethod
    def parse(cls, soup: BeautifulSoup) -> Optional[Dict[str, Any]]:
        return cls.select_primary(cls.parse_json_ld(soup))


def _search(value: Any, props: List[str]) -> List[str]:
    if isinstance(value, bool):
        return []
    if isinstance(value, str):
        return [value] if not props else []
    if isinstance(value, (int, float)):
        return [str(value)] if not props else []
    if isinstance(value, list):
        if not props and all(isinstance(item, (str, int, float)) and not isinstance(item, bool) for item in value):
            return [str(item) for item in value]
        found: List[str] = []
        for item in value:
            found.extend(_search(item, props))
        return found
    if not isinstance(value, dict):
        return []
    if not props:
        name = value.get("name")
        return [name] if isinstance(name, str) else []
    head, *rest = props
    if head in value:
        return _search(value[head], rest)
    return []


def get_schema_property(data: Optional[Dict[str, Any]], path: str) -> Optional[str]:
    """
    Resolve a dotted path such as ``author.name`` against JSON-LD data.

    Arrays are searched element-wise and an object at the end of the path
    yields its ``name``. Multiple hits are deduplicated and comma-joined.
    """
    if not data:
        return None
    results = _search(data, path.split("."))
    unique = list(dict.fromkeys(r.strip() for r in results if r and r.strip()))
    return ", ".join(unique) if unique else None


class MetaTags:
    """Case-insensitive lookup over every ``<meta>`` tag on a page."""

    def __init__(self, soup: BeautifulSoup) -> None:
        self._by_name: Dict[str, str] = {}
        self._by_property: Dict[str, str] = {}
        for meta in soup.find_all("meta"):
            content = meta.get("content")
            if not isinstance(content, str):
                continue
            content = content.strip()
            name = meta.get("name")
            prop = meta.get("property")
            # First occurrence wins.
            if isinstance(name, str) and content:
                self._by_name.setdefault(name.lower(), content)
            if isinstance(prop, str) and content:
                self._by_property.setdefault(prop.lower(), content)

    def name(self, key: str) -> Optional[str]:
        return self._by_name.get(key.lower())

    def property(self, key: str) -> Optional[str]:
        return self._by_property.get(key.lower())
