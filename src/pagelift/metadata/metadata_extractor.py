"""
Page metadata reconciled from structured data, Open Graph, Twitter Cards,
plain meta tags and DOM fallbacks.

Each field walks its own ranked chain and takes the first non-empty value;
values from lower-ranked sources are never merged into a higher one.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterable, Optional

import structlog
from bs4 import BeautifulSoup

from pagelift.protocols import ExtractedMetadata
from pagelift.utils.urls import absolutize, get_hostname

from .structured_data_parser import MetaTags, SchemaOrgParser, get_schema_property

logger = structlog.get_logger(__name__)

AUTHOR_SELECTORS = ('[itemprop="author"]', '[rel="author"]', ".author-name", ".byline-name", ".post-author")
FAVICON_SELECTORS = ('link[rel="icon"]', 'link[rel="shortcut icon"]', 'link[rel="apple-touch-icon"]')
MAX_AUTHORS = 10
TITLE_SEPARATORS = r"[|\-–—:]"


def first_of(candidates: Iterable[Callable[[], Optional[str]]]) -> Optional[str]:
    """Evaluate candidates lazily and return the first non-empty value."""
    for candidate in candidates:
        value = candidate()
        if value:
            return value
    return None


def clean_title(title: str, site_name: Optional[str]) -> str:
    """Strip a leading or trailing site-name segment ("Title | Site")."""
    if not title or not site_name:
        return title.strip() if title else title
    escaped = re.escape(site_name)
    for pattern in (
        rf"\s*{TITLE_SEPARATORS}\s*{escaped}\s*$",
        rf"^\s*{escaped}\s*{TITLE_SEPARATORS}\s*",
    ):
        regex = re.compile(pattern, re.IGNORECASE)
        if regex.search(title):
            return regex.sub("", title, count=1).strip()
    return title.strip()


def dedupe_authors(value: str) -> str:
    parts = [part.strip() for part in value.split(",")]
    unique = list(dict.fromkeys(part for part in parts if part))
    return ", ".join(unique[:MAX_AUTHORS])


class MetadataExtractor:
    """Extracts :class:`ExtractedMetadata` from a parsed document."""

    def extract(self, soup: BeautifulSoup, base_url: Optional[str]) -> ExtractedMetadata:
        schema = SchemaOrgParser.parse(soup)
        meta = MetaTags(soup)

        url = base_url or first_of(
            [
                lambda: meta.property("og:url"),
                lambda: meta.property("twitter:url"),
                lambda: get_schema_property(schema, "url"),
                lambda: self._attr(soup, 'link[rel="canonical"]', "href"),
            ]
        )
        domain = get_hostname(url) if url else None

        site_name = self.site_name(schema, meta)
        metadata = ExtractedMetadata(
            title=self.title(soup, schema, meta, site_name),
            author=self.author(soup, schema, meta),
            published=self.published(soup, schema, meta),
            modified=first_of(
                [
                    lambda: get_schema_property(schema, "dateModified"),
                    lambda: meta.property("article:modified_time"),
                ]
            ),
            site_name=site_name,
            description=first_of(
                [
                    lambda: meta.name("description"),
                    lambda: meta.property("og:description"),
                    lambda: get_schema_property(schema, "description"),
                    lambda: meta.name("twitter:description"),
                ]
            ),
            image=first_of(
                [
                    lambda: meta.property("og:image"),
                    lambda: meta.name("twitter:image"),
                    lambda: get_schema_property(schema, "image.url"),
                    lambda: get_schema_property(schema, "image"),
                    lambda: get_schema_property(schema, "thumbnailUrl"),
                ]
            ),
            favicon=self.favicon(soup, base_url),
            url=url,
            domain=domain,
            structured_data=schema,
        )
        logger.debug(
            "Metadata extracted",
            url=base_url,
            has_author=bool(metadata.author),
            has_published=bool(metadata.published),
            has_site_name=bool(metadata.site_name),
            has_image=bool(metadata.image),
        )
        return metadata

    # --- field chains -----------------------------------------------------

    @staticmethod
    def _attr(soup: BeautifulSoup, selector: str, attr: str) -> Optional[str]:
        element = soup.select_one(selector)
        if element is None:
            return None
        value = element.get(attr)
        if not isinstance(value, str):
            return None
        return value.strip() or None

    def title(
        self, soup: BeautifulSoup, schema: Optional[Dict[str, Any]], meta: MetaTags, site_name: Optional[str]
    ) -> Optional[str]:
        raw = first_of(
            [
                lambda: meta.property("og:title"),
                lambda: meta.name("twitter:title"),
                lambda: get_schema_property(schema, "headline"),
                lambda: get_schema_property(schema, "name"),
                lambda: meta.name("title"),
                lambda: soup.title.get_text().strip() if soup.title else None,
            ]
        )
        return clean_title(raw, site_name) if raw else None

    def author(self, soup: BeautifulSoup, schema: Optional[Dict[str, Any]], meta: MetaTags) -> Optional[str]:
        from_meta = first_of(
            [
                lambda: meta.name("author"),
                lambda: meta.property("author"),
                lambda: meta.property("article:author"),
                lambda: meta.name("byl"),
                lambda: meta.name("sailthru.author"),
            ]
        )
        if from_meta:
            return from_meta

        from_schema = get_schema_property(schema, "author.name") or get_schema_property(schema, "author")
        if from_schema:
            return dedupe_authors(from_schema)

        for selector in AUTHOR_SELECTORS:
            element = soup.select_one(selector)
            if element is None:
                continue
            text = element.get_text().strip()
            if text and text.lower() != "author":
                return text

        return meta.name("twitter:creator")

    def published(self, soup: BeautifulSoup, schema: Optional[Dict[str, Any]], meta: MetaTags) -> Optional[str]:
        return first_of(
            [
                lambda: get_schema_property(schema, "datePublished"),
                lambda: meta.property("article:published_time"),
                lambda: meta.name("publishDate"),
                lambda: meta.name("date"),
                lambda: meta.name("sailthru.date"),
                lambda: self._time_element(soup),
            ]
        )

    @staticmethod
    def site_name(schema: Optional[Dict[str, Any]], meta: MetaTags) -> Optional[str]:
        return first_of(
            [
                lambda: meta.property("og:site_name"),
                lambda: get_schema_property(schema, "publisher.name"),
                lambda: get_schema_property(schema, "isPartOf.name"),
                lambda: meta.name("application-name"),
                lambda: meta.name("twitter:site"),
            ]
        )

    def favicon(self, soup: BeautifulSoup, base_url: Optional[str]) -> Optional[str]:
        icon = first_of([lambda s=selector: self._attr(soup, s, "href") for selector in FAVICON_SELECTORS])
        if icon:
            if base_url and not icon.startswith("http"):
                return absolutize(icon, base_url)
            return icon
        return absolutize("/favicon.ico", base_url) if base_url else None

    @staticmethod
    def _time_element(soup: BeautifulSoup) -> Optional[str]:
        element = soup.select_one("time[datetime]")
        if element is None:
            return None
        value = element.get("datetime")
        if isinstance(value, str) and value.strip():
            return value.strip()
        return element.get_text().strip() or None


def extract_metadata(html: str, url: str) -> ExtractedMetadata:
    return MetadataExtractor().extract(BeautifulSoup(html, "lxml"), url)
