"""
Readability parser: turns fetched HTML into an :class:`ArticleContent`.

Metadata and site extractors see the URL-absolutised original document;
the readerable pre-check and the readability-lxml pass see the pre-cleaned one.
"""

from __future__ import annotations

import copy
import time
from typing import Callable, List, Optional, Tuple, Union

import structlog
from bs4 import BeautifulSoup

from pagelift.cleaner import HtmlCleaner
from pagelift.cleaner.html_cleaner import select_safe
from pagelift.config.config import Config
from pagelift.metadata import MetadataExtractor
from pagelift.observability import histogram
from pagelift.protocols import ArticleContent, ExtractedMetadata, ReadabilityError, ReadabilityErrorKind
from pagelift.sites import get_extractor
from pagelift.sites.base import ExtractorResult
from pagelift.utils.fallback import Failure, first_success_sync
from pagelift.utils.text import html_to_text
from pagelift.utils.urls import make_urls_absolute

from .content_scorer import ContentScorer, ScoredArticle
from .readerable import is_probably_readerable

logger = structlog.get_logger(__name__)

FORCE_EXTRACT_SELECTORS = [
    ".post-content",
    ".entry-content",
    ".article-content",
    ".content",
    "article",
    "main",
    '[role="main"]',
]
UNTITLED = "Untitled"
NOT_READABLE_MESSAGE = (
    "This page doesn't appear to contain readable article content. "
    "It may be a homepage, search results, or a page with mostly navigation elements."
)
EMPTY_MESSAGE = "Unable to extract content from this page"

ParseOutcome = Union[ArticleContent, ReadabilityError]


class ReadabilityParser:
    """Runs cleaning, metadata, site extractors and content scoring for one page."""

    def __init__(
        self,
        config: Optional[Config] = None,
        cleaner: Optional[HtmlCleaner] = None,
        metadata_extractor: Optional[MetadataExtractor] = None,
        scorer: Optional[ContentScorer] = None,
    ) -> None:
        self.config = config or Config()
        self.cleaner = cleaner or HtmlCleaner(self.config.cleaner)
        self.metadata_extractor = metadata_extractor or MetadataExtractor()
        self.scorer = scorer or ContentScorer(self.config.readability)
        self.logger = logger.bind(component="ReadabilityParser")

    def parse(self, html: str, url: str, *, skip_pre_check: bool = False, force_parse: bool = False) -> ParseOutcome:
        """
        Extract the article from ``html``.

        Args:
            html: Raw page HTML.
            url: Page URL, used to absolutise links and pick site rules.
            skip_pre_check: Skip the readerable heuristic.
            force_parse: When scoring finds nothing, fall back to well-known
                content containers.

        Returns:
            ArticleContent on success, otherwise a ReadabilityError.
        """
        start_time = time.time()
        try:
            return self._parse(html, url, skip_pre_check, force_parse)
        except Exception as e:
            self.logger.error("Content parsing failed", url=url, error=str(e), exc_info=True)
            return ReadabilityError(ReadabilityErrorKind.PARSE_FAILED, f"Failed to parse content: {e}")
        finally:
            histogram("stage_duration_seconds", time.time() - start_time, {"stage": "parse"})

    def _parse(self, html: str, url: str, skip_pre_check: bool, force_parse: bool) -> ParseOutcome:
        soup = BeautifulSoup(html, "lxml")
        make_urls_absolute(soup, url)
        original = copy.copy(soup)

        self.cleaner.clean_soup(soup, url)
        metadata = self.metadata_extractor.extract(original, url)

        site_article = self._site_article(original, url, metadata)
        if site_article is not None:
            return site_article

        readability = self.config.readability
        if not skip_pre_check and not is_probably_readerable(
            soup, readability.readerable_min_content_length, readability.readerable_min_score
        ):
            self.logger.info("Page not readerable", url=url)
            return ReadabilityError(ReadabilityErrorKind.NOT_READABLE, NOT_READABLE_MESSAGE)

        article = self.scorer.parse(soup)
        if article is None or not article.text_content.strip():
            if force_parse:
                forced = self.force_extract(soup, url)
                if forced is not None:
                    return self._from_forced(forced, metadata)
            kind = ReadabilityErrorKind.PARSE_FAILED if article is None else ReadabilityErrorKind.EMPTY_CONTENT
            self.logger.info("No article content found", url=url, kind=kind.value)
            return ReadabilityError(kind, EMPTY_MESSAGE)

        self.logger.debug("Article extracted", url=url, length=article.length, title=article.title)
        return self._from_scored(article, metadata)

    def _site_article(self, soup: BeautifulSoup, url: str, metadata: ExtractedMetadata) -> Optional[ArticleContent]:
        """Site extractor result, or None when generic extraction should run."""
        extractor = get_extractor(soup, url, metadata.structured_data, metadata)
        if extractor is None:
            return None
        name = type(extractor).__name__
        try:
            result = extractor.extract()
        except Exception as e:
            self.logger.warning(
                "Site extractor failed, using generic extraction", url=url, extractor=name, error=str(e)
            )
            return None
        if not result.text_content.strip():
            self.logger.warning("Site extractor found no text, using generic extraction", url=url, extractor=name)
            return None
        self.logger.info("Extracted with site extractor", url=url, extractor=name)
        return self._from_site_extractor(result, metadata)

    # --- force extraction -------------------------------------------------

    def force_extract(self, soup: BeautifulSoup, url: str) -> Optional[str]:
        """Inner HTML of the first well-known content container that qualifies."""
        min_length = self.config.readability.force_extract_min_text_length
        attempts: List[Tuple[str, Callable[[], Union[str, Failure]]]] = []

        site_config = self.cleaner.site_config_for(url)
        if site_config is not None and site_config.article_selector:
            attempts.append(
                (site_config.article_selector, lambda s=site_config.article_selector: self._container(soup, s, 0))
            )
        attempts.extend(
            (selector, lambda s=selector: self._container(soup, s, min_length)) for selector in FORCE_EXTRACT_SELECTORS
        )

        outcome = first_success_sync(attempts, component="force_extract")
        if not outcome.succeeded:
            return None
        self.logger.info("Force-extracted content", url=url, selector=outcome.winner)
        return outcome.value

    @staticmethod
    def _container(soup: BeautifulSoup, selector: str, min_text_length: int) -> Union[str, Failure]:
        matches = select_safe(soup, selector)
        if not matches:
            return Failure("no match")
        inner = matches[0].decode_contents().strip()
        if not inner:
            return Failure("empty container")
        text_length = len(html_to_text(inner))
        if min_text_length and text_length <= min_text_length:
            return Failure(f"only {text_length} characters of text")
        return inner

    # --- result assembly --------------------------------------------------

    @staticmethod
    def _from_site_extractor(result: ExtractorResult, metadata: ExtractedMetadata) -> ArticleContent:
        found = result.metadata
        return ArticleContent(
            title=found.title or metadata.title or UNTITLED,
            content_html=result.content,
            text_content=result.text_content,
            excerpt=found.description or metadata.description or "",
            byline=found.author,
            site_name=found.site_name or metadata.site_name,
            author=found.author or metadata.author,
            published=found.published or metadata.published,
            image=found.image or metadata.image,
            description=found.description or metadata.description,
            favicon=metadata.favicon,
            length=len(result.text_content),
        )

    @staticmethod
    def _from_scored(article: ScoredArticle, metadata: ExtractedMetadata) -> ArticleContent:
        excerpt = article.excerpt or metadata.description or ""
        return ArticleContent(
            title=article.title or metadata.title or UNTITLED,
            content_html=article.content,
            text_content=article.text_content,
            excerpt=excerpt,
            byline=article.byline,
            site_name=metadata.site_name,
            author=metadata.author or article.byline,
            published=metadata.published,
            image=metadata.image,
            description=metadata.description or excerpt or None,
            favicon=metadata.favicon,
            length=article.length,
        )

    @staticmethod
    def _from_forced(content_html: str, metadata: ExtractedMetadata) -> ArticleContent:
        text = html_to_text(content_html)
        return ArticleContent(
            title=metadata.title or UNTITLED,
            content_html=content_html,
            text_content=text,
            excerpt=metadata.description or "",
            byline=metadata.author,
            site_name=metadata.site_name,
            author=metadata.author,
            published=metadata.published,
            image=metadata.image,
            description=metadata.description,
            favicon=metadata.favicon,
            length=len(text),
        )
