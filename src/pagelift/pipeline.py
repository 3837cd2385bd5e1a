"""
Article pipeline: URL in, formatted article (or a classified failure) out.

Fetch -> parse -> soft-paywall check -> Markdown. A blocked fetch is
escalated to an open browser tab (when a channel is configured) and then to
the bypass orchestrator.
"""

from __future__ import annotations

import dataclasses
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

import structlog

from pagelift.bypass.orchestrator import BypassOrchestrator, create_archive_source
from pagelift.config.config import Config
from pagelift.extractor import ReadabilityParser
from pagelift.fetcher.http_client import Fetcher
from pagelift.formatter import format_article
from pagelift.observability import histogram, increment
from pagelift.paywall import detect_paywall_in_text
from pagelift.protocols import (
    ArchiveSource,
    ArticleContent,
    BrowserTabSource,
    BypassResult,
    ExtractionError,
    FetchError,
    ReadabilityError,
    ReadabilityErrorKind,
    StrategySource,
)

logger = structlog.get_logger(__name__)

DEFAULT_BROWSER_TAB_TTL = 30.0


class ArticleStatus(str, Enum):
    SUCCESS = "success"
    BLOCKED = "blocked"
    NOT_READABLE = "not-readable"
    EMPTY_CONTENT = "empty-content"
    ERROR = "error"


@dataclass(frozen=True)
class LoadArticleOptions:
    """Per-request switches. ``None`` means "use the configured default"."""

    skip_pre_check: bool = False
    force_parse: Optional[bool] = None
    enable_bypass: Optional[bool] = None
    show_article_image: Optional[bool] = None


@dataclass(frozen=True)
class LoadedArticle:
    content: ArticleContent
    markdown: str
    url: str
    bypassed_readability_check: bool = False
    archive_source: Optional[ArchiveSource] = None


@dataclass(frozen=True)
class LoadArticleResult:
    status: ArticleStatus
    url: str
    article: Optional[LoadedArticle] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    has_browser_extension: bool = False
    found_tab: bool = False
    bypass_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status is ArticleStatus.SUCCESS


class ExtractionContext:
    """
    Request-scoped access to the optional browser-tab channel.

    ``browser_tab_available`` forces the availability answer; otherwise the
    channel is asked and the answer cached for ``availability_ttl`` seconds.
    """

    def __init__(
        self,
        browser_tab_source: Optional[BrowserTabSource] = None,
        browser_tab_available: Optional[bool] = None,
        availability_ttl: float = DEFAULT_BROWSER_TAB_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.browser_tab_source = browser_tab_source
        self.browser_tab_available = browser_tab_available
        self.availability_ttl = availability_ttl
        self._clock = clock
        self._availability: Optional[tuple[float, bool]] = None

    async def is_browser_tab_available(self) -> bool:
        if self.browser_tab_available is not None:
            return self.browser_tab_available
        if self.browser_tab_source is None:
            return False

        now = self._clock()
        if self._availability is not None and now - self._availability[0] < self.availability_ttl:
            return self._availability[1]
        try:
            available = await self.browser_tab_source.is_available()
        except Exception as e:
            logger.warning("Browser tab availability check failed", error=str(e))
            available = False
        self._availability = (now, available)
        return available

    async def open_tab_html(self, url: str) -> Optional[str]:
        if self.browser_tab_source is None or not await self.is_browser_tab_available():
            return None
        try:
            return await self.browser_tab_source.get_open_tab_html(url)
        except Exception as e:
            logger.warning("Browser tab lookup failed", url=url, error=str(e))
            return None


class ArticlePipeline:
    """Loads one article per call; safe to reuse across requests."""

    def __init__(
        self,
        config: Optional[Config] = None,
        fetcher: Optional[Fetcher] = None,
        orchestrator: Optional[BypassOrchestrator] = None,
        parser: Optional[ReadabilityParser] = None,
        context: Optional[ExtractionContext] = None,
    ) -> None:
        self.config = config or Config()
        self.fetcher = fetcher or Fetcher(self.config)
        self.orchestrator = orchestrator or BypassOrchestrator(self.config, self.fetcher)
        self.parser = parser or ReadabilityParser(self.config)
        self.context = context or ExtractionContext()
        self.logger = logger.bind(component="ArticlePipeline")

    async def close(self) -> None:
        await self.fetcher.close()

    async def __aenter__(self) -> "ArticlePipeline":
        await self.fetcher.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # --- entry points -----------------------------------------------------

    async def extract_article(self, url: str) -> Union[ArticleContent, ExtractionError]:
        """
        Fetch and extract ``url`` with default options.

        Returns:
            The article (with ``archive_source`` set when a bypass strategy
            supplied the HTML), or an ExtractionError whose ``kind`` is the
            load status.
        """
        result = await self.load_article(url)
        if result.article is not None:
            return result.article.content
        return ExtractionError(
            kind=result.status.value,
            message=result.bypass_error or result.error or "Unknown error",
            url=url,
            status_code=result.status_code,
            details={
                "fetch_error": result.error,
                "bypass_error": result.bypass_error,
                "has_browser_extension": result.has_browser_extension,
                "found_tab": result.found_tab,
            },
        )

    async def load_article(self, url: str, options: Optional[LoadArticleOptions] = None) -> LoadArticleResult:
        options = options or LoadArticleOptions()
        return await self._run(url, lambda: self._load(url, options))

    async def load_article_via_bypass(
        self, url: str, options: Optional[LoadArticleOptions] = None
    ) -> LoadArticleResult:
        """Skip the direct fetch and go straight to the bypass strategies."""
        options = options or LoadArticleOptions()

        async def load() -> LoadArticleResult:
            self.logger.info("Direct bypass requested", url=url)
            outcome = await self._via_bypass(url, options)
            if isinstance(outcome, LoadedArticle):
                return LoadArticleResult(status=ArticleStatus.SUCCESS, url=url, article=outcome)
            return LoadArticleResult(status=ArticleStatus.ERROR, url=url, error=outcome)

        return await self._run(url, load)

    async def _run(self, url: str, load: Callable[[], Awaitable[LoadArticleResult]]) -> LoadArticleResult:
        start_time = time.time()
        with structlog.contextvars.bound_contextvars(request_id=uuid.uuid4().hex[:12]):
            result = await load()
            elapsed = time.time() - start_time
            self.logger.info(
                "Article load finished",
                url=url,
                status=result.status.value,
                archive_source=result.article.archive_source.service
                if result.article and result.article.archive_source
                else None,
                elapsed=round(elapsed, 3),
            )
        increment("articles", labels={"status": result.status.value})
        histogram("stage_duration_seconds", elapsed, {"stage": "total"})
        return result

    # --- stages -----------------------------------------------------------

    def _bypass_enabled(self, options: LoadArticleOptions) -> bool:
        return self.config.bypass.enabled if options.enable_bypass is None else options.enable_bypass

    async def _load(self, url: str, options: LoadArticleOptions) -> LoadArticleResult:
        fetched = await self.fetcher.fetch(url)

        if isinstance(fetched, FetchError):
            if not fetched.is_blocked:
                return LoadArticleResult(
                    status=ArticleStatus.ERROR, url=url, error=fetched.message, status_code=fetched.status_code
                )
            return await self._handle_blocked(url, fetched, options)

        force_parse = options.skip_pre_check if options.force_parse is None else options.force_parse
        parsed = self.parser.parse(
            fetched.html, fetched.final_url, skip_pre_check=options.skip_pre_check, force_parse=force_parse
        )

        if isinstance(parsed, ReadabilityError):
            self.logger.info("Parse failed", url=url, kind=parsed.kind.value, message=parsed.message)
            from_tab = await self._from_browser_tab(url, options)
            if from_tab is not None:
                return LoadArticleResult(status=ArticleStatus.SUCCESS, url=url, article=from_tab)
            status = (
                ArticleStatus.NOT_READABLE
                if parsed.kind is ReadabilityErrorKind.NOT_READABLE
                else ArticleStatus.EMPTY_CONTENT
            )
            return LoadArticleResult(status=status, url=url, error=parsed.message)

        if self._bypass_enabled(options):
            upgraded = await self._upgrade_soft_paywall(url, parsed, options)
            if upgraded is not None:
                return LoadArticleResult(status=ArticleStatus.SUCCESS, url=url, article=upgraded)

        return LoadArticleResult(status=ArticleStatus.SUCCESS, url=url, article=self._loaded(parsed, url, options))

    async def _handle_blocked(self, url: str, error: FetchError, options: LoadArticleOptions) -> LoadArticleResult:
        increment("paywall_detected", labels={"kind": "hard"})
        self.logger.info("Blocked page detected", url=url, status=error.status_code)

        tab_html = await self.context.open_tab_html(url)
        if tab_html is not None:
            from_tab = self._parse_tab_html(url, tab_html, options)
            if from_tab is not None:
                return LoadArticleResult(status=ArticleStatus.SUCCESS, url=url, article=from_tab)

        bypass_error: Optional[str] = None
        if self._bypass_enabled(options):
            outcome = await self._via_bypass(url, options)
            if isinstance(outcome, LoadedArticle):
                return LoadArticleResult(status=ArticleStatus.SUCCESS, url=url, article=outcome)
            bypass_error = outcome

        return LoadArticleResult(
            status=ArticleStatus.BLOCKED,
            url=url,
            error=error.message,
            status_code=error.status_code,
            has_browser_extension=await self.context.is_browser_tab_available(),
            found_tab=tab_html is not None,
            bypass_error=bypass_error,
        )

    async def _from_browser_tab(self, url: str, options: LoadArticleOptions) -> Optional[LoadedArticle]:
        tab_html = await self.context.open_tab_html(url)
        if tab_html is None:
            return None
        return self._parse_tab_html(url, tab_html, options)

    def _parse_tab_html(self, url: str, html: str, options: LoadArticleOptions) -> Optional[LoadedArticle]:
        parsed = self.parser.parse(html, url, skip_pre_check=True, force_parse=True)
        if isinstance(parsed, ReadabilityError):
            self.logger.info("Browser tab content unusable", url=url, kind=parsed.kind.value)
            return None
        source = create_archive_source(BypassResult(success=True, source=StrategySource.BROWSER_TAB))
        return self._loaded(parsed, url, options, archive_source=source, bypassed=True)

    async def _via_bypass(self, url: str, options: LoadArticleOptions) -> Union[LoadedArticle, str]:
        result = await self.orchestrator.try_bypass(url)
        if not result.success or not result.html:
            return result.error or "Failed to retrieve content via bypass"

        parsed = self.parser.parse(result.html, url, skip_pre_check=True, force_parse=True)
        if isinstance(parsed, ReadabilityError):
            self.logger.info(
                "Bypassed content could not be parsed", url=url, source=result.source.value, error=parsed.message
            )
            return f"Retrieved content but failed to parse: {parsed.message}"

        return self._loaded(parsed, url, options, archive_source=create_archive_source(result), bypassed=True)

    async def _upgrade_soft_paywall(
        self, url: str, parsed: ArticleContent, options: LoadArticleOptions
    ) -> Optional[LoadedArticle]:
        """Re-fetch a soft-paywalled article; keep the bypass only if it is clearly longer."""
        check = detect_paywall_in_text(parsed.text_content, url, self.config.cleaner.selectors_file)
        if not check.is_paywalled:
            return None

        increment("paywall_detected", labels={"kind": "soft"})
        original_length = len(parsed.text_content)
        self.logger.info(
            "Soft paywall detected", url=url, pattern=check.matched_pattern, original_length=original_length
        )

        outcome = await self._via_bypass(url, options)
        if isinstance(outcome, str):
            self.logger.info("Soft paywall bypass failed, keeping original", url=url, reason=outcome)
            return None

        bypassed_length = len(outcome.content.text_content)
        required = original_length * (1 + self.config.bypass.soft_paywall_min_improvement)
        if bypassed_length >= required:
            self.logger.info(
                "Soft paywall bypassed",
                url=url,
                source=outcome.archive_source.service if outcome.archive_source else None,
                original_length=original_length,
                bypassed_length=bypassed_length,
            )
            return outcome

        self.logger.info(
            "Soft paywall bypass did not improve enough, keeping original",
            url=url,
            original_length=original_length,
            bypassed_length=bypassed_length,
        )
        return None

    def _loaded(
        self,
        parsed: ArticleContent,
        url: str,
        options: LoadArticleOptions,
        archive_source: Optional[ArchiveSource] = None,
        bypassed: bool = False,
    ) -> LoadedArticle:
        show_image = (
            self.config.markdown.show_article_image
            if options.show_article_image is None
            else options.show_article_image
        )
        content = dataclasses.replace(parsed, archive_source=archive_source) if archive_source else parsed
        formatted = format_article(
            content.title, content.content_html, image=content.image, archive_source=archive_source, show_image=show_image
        )
        return LoadedArticle(
            content=content,
            markdown=formatted.markdown,
            url=url,
            bypassed_readability_check=bypassed,
            archive_source=archive_source,
        )
