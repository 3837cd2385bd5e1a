"""
Tests for the article pipeline.

The first group drives the real components with HTTP faked by aioresponses;
the second swaps in stub collaborators to pin down the decision logic
(status mapping, soft-paywall acceptance, browser-tab fallback).
"""

import re
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
from aioresponses import aioresponses

from pagelift.pipeline import ArticlePipeline, ArticleStatus, ExtractionContext, LoadArticleOptions
from pagelift.protocols import (
    ArticleContent,
    BypassResult,
    ExtractionError,
    FetchError,
    FetchErrorKind,
    FetchResult,
    ReadabilityError,
    ReadabilityErrorKind,
    StrategySource,
)
from tests.helpers import counter_delta

URL = "https://example.com/2024/01/rivers"
PAYWALLED_URL = "https://www.nytimes.com/2024/01/05/world/rivers.html"

ARCHIVE_IS = re.compile(r"^https://archive\.(is|today|ph)/newest/.*$")
WAYBACK_API = re.compile(r"^https://archive\.org/wayback/available\?.*$")


# ============================================================================
# Stubs
# ============================================================================


def fetched(html: str, url: str = URL) -> FetchResult:
    return FetchResult(html=html, final_url=url, content_length=len(html), content_type="text/html")


def article(text: str, title: str = "Rivers") -> ArticleContent:
    return ArticleContent(title=title, content_html=f"<p>{text}</p>", text_content=text, length=len(text))


class StubParser:
    """Maps HTML strings to canned parse outcomes and records each call."""

    def __init__(self, outcomes: Dict[str, object]):
        self.outcomes = outcomes
        self.calls: List[dict] = []

    def parse(self, html, url, *, skip_pre_check=False, force_parse=False):
        self.calls.append({"html": html, "skip_pre_check": skip_pre_check, "force_parse": force_parse})
        return self.outcomes[html]


class StubTabSource:
    def __init__(self, available: bool = True, html: Optional[str] = None):
        self.available = available
        self.html = html
        self.checks = 0

    async def is_available(self) -> bool:
        self.checks += 1
        return self.available

    async def get_open_tab_html(self, url: str) -> Optional[str]:
        return self.html


def stub_pipeline(config, fetch_outcome, parser, bypass: Optional[BypassResult] = None, context=None):
    fetcher = AsyncMock()
    fetcher.fetch.return_value = fetch_outcome
    orchestrator = AsyncMock()
    orchestrator.try_bypass.return_value = bypass or BypassResult(success=False, error="All bypass methods failed: x")
    pipeline = ArticlePipeline(config, fetcher=fetcher, orchestrator=orchestrator, parser=parser, context=context)
    return pipeline, orchestrator


# ============================================================================
# Real components, HTTP faked
# ============================================================================


@pytest.mark.unit
class TestPipelineEndToEnd:
    @pytest.mark.asyncio
    async def test_clean_fetch(self, config, fetcher, make_article_page):
        with aioresponses() as m:
            m.get(URL, status=200, body=make_article_page(body_length=2000))

            with counter_delta("pagelift_articles_total", {"status": "success"}):
                result = await ArticlePipeline(config, fetcher=fetcher).load_article(URL)

        assert result.success
        assert result.article.archive_source is None
        assert not result.article.bypassed_readability_check
        assert "committee reviewed the evidence" in result.article.markdown
        assert "Sponsored" not in result.article.markdown
        assert result.article.content.length >= 1800

    @pytest.mark.asyncio
    async def test_blocked_then_googlebot(self, config, fetcher, make_article_page):
        with aioresponses() as m:
            m.get(URL, status=403)
            m.get(URL, status=200, body=make_article_page(body_length=2000))

            with counter_delta("pagelift_paywall_detected_total", {"kind": "hard"}):
                content = await ArticlePipeline(config, fetcher=fetcher).extract_article(URL)

        assert isinstance(content, ArticleContent)
        assert content.archive_source is not None
        assert content.archive_source.service == "googlebot-ua"
        assert content.archive_source.url is None

    @pytest.mark.asyncio
    async def test_blocked_markdown_is_annotated(self, config, fetcher, make_article_page):
        with aioresponses() as m:
            m.get(URL, status=403)
            m.get(URL, status=200, body=make_article_page())

            result = await ArticlePipeline(config, fetcher=fetcher).load_article(URL)

        assert result.article.bypassed_readability_check
        assert result.article.markdown.startswith("> Retrieved via Googlebot")

    @pytest.mark.asyncio
    async def test_total_failure_lists_every_reason(self, config, fetcher):
        with aioresponses() as m:
            m.get(URL, status=403, repeat=True)
            m.get(ARCHIVE_IS, status=404, repeat=True)
            m.get(WAYBACK_API, status=200, body='{"archived_snapshots": {}}')

            result = await ArticlePipeline(config, fetcher=fetcher).extract_article(URL)

        assert isinstance(result, ExtractionError)
        assert result.kind == "blocked"
        assert result.status_code == 403
        assert result.message.startswith("All bypass methods failed: ")
        for reason in (
            "Googlebot: Access denied",
            "Bingbot: Access denied",
            "Social Referrer: All social referrer attempts failed",
            "WallHopper: Access denied",
            "archive.is: Archive.is returned HTTP 404",
            "Wayback: No archived version found on Wayback Machine",
        ):
            assert reason in result.message
        assert result.details["fetch_error"] == "Access denied — this page requires authentication"

    @pytest.mark.asyncio
    async def test_not_found_is_plain_error(self, config, fetcher):
        with aioresponses() as m:
            m.get(URL, status=404)

            result = await ArticlePipeline(config, fetcher=fetcher).load_article(URL)

        assert result.status is ArticleStatus.ERROR
        assert result.error == "Page not found"
        assert result.status_code == 404
        assert result.bypass_error is None


# ============================================================================
# Stubbed collaborators
# ============================================================================


@pytest.mark.unit
class TestStatusMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kind,status",
        [
            (ReadabilityErrorKind.NOT_READABLE, ArticleStatus.NOT_READABLE),
            (ReadabilityErrorKind.EMPTY_CONTENT, ArticleStatus.EMPTY_CONTENT),
            (ReadabilityErrorKind.PARSE_FAILED, ArticleStatus.EMPTY_CONTENT),
        ],
    )
    async def test_parse_errors(self, config, kind, status):
        parser = StubParser({"<html>": ReadabilityError(kind, "nope")})
        pipeline, orchestrator = stub_pipeline(config, fetched("<html>"), parser)

        result = await pipeline.load_article(URL)

        assert result.status is status
        assert result.error == "nope"
        orchestrator.try_bypass.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_force_parse_follows_skip_pre_check(self, config):
        parser = StubParser({"<html>": article("text")})
        pipeline, _ = stub_pipeline(config, fetched("<html>"), parser)

        await pipeline.load_article(URL, LoadArticleOptions(skip_pre_check=True))
        await pipeline.load_article(URL, LoadArticleOptions(skip_pre_check=True, force_parse=False))

        assert parser.calls[0]["force_parse"] is True
        assert parser.calls[1]["force_parse"] is False

    @pytest.mark.asyncio
    async def test_bypass_disabled_reports_blocked(self, config):
        blocked = FetchError(FetchErrorKind.BLOCKED, "Access denied", status_code=403)
        pipeline, orchestrator = stub_pipeline(config, blocked, StubParser({}))

        result = await pipeline.load_article(URL, LoadArticleOptions(enable_bypass=False))

        assert result.status is ArticleStatus.BLOCKED
        assert result.bypass_error is None
        assert not result.has_browser_extension
        orchestrator.try_bypass.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bypassed_html_unparseable(self, config):
        blocked = FetchError(FetchErrorKind.BLOCKED, "Access denied", status_code=403)
        parser = StubParser({"<bypassed>": ReadabilityError(ReadabilityErrorKind.EMPTY_CONTENT, "nothing there")})
        bypass = BypassResult(success=True, source=StrategySource.BINGBOT, html="<bypassed>")
        pipeline, _ = stub_pipeline(config, blocked, parser, bypass=bypass)

        result = await pipeline.load_article(URL)

        assert result.status is ArticleStatus.BLOCKED
        assert result.bypass_error == "Retrieved content but failed to parse: nothing there"
        assert parser.calls[0]["skip_pre_check"] and parser.calls[0]["force_parse"]

    @pytest.mark.asyncio
    async def test_direct_bypass_entry_point(self, config):
        parser = StubParser({"<snapshot>": article("archived text")})
        bypass = BypassResult(
            success=True,
            source=StrategySource.WAYBACK,
            html="<snapshot>",
            archive_url="https://web.archive.org/web/2024/" + URL,
            snapshot_timestamp="January 5, 2024",
        )
        pipeline, _ = stub_pipeline(config, fetched("<unused>"), parser, bypass=bypass)

        result = await pipeline.load_article_via_bypass(URL)

        assert result.success
        assert result.article.archive_source.service == "archive-service-b"
        assert result.article.archive_source.timestamp == "January 5, 2024"
        assert result.article.content.archive_source == result.article.archive_source
        pipeline.fetcher.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_direct_bypass_failure(self, config):
        pipeline, _ = stub_pipeline(config, fetched("<unused>"), StubParser({}))

        result = await pipeline.load_article_via_bypass(URL)

        assert result.status is ArticleStatus.ERROR
        assert result.error == "All bypass methods failed: x"


@pytest.mark.unit
class TestSoftPaywall:
    """A bypassed version replaces the original only when clearly longer."""

    ORIGINAL = "a" * 266 + " Subscribe now to continue reading"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bypassed_length,replaced", [(360, True), (359, False)])
    async def test_improvement_threshold(self, config, bypassed_length, replaced):
        assert len(self.ORIGINAL) == 300
        parser = StubParser({"<original>": article(self.ORIGINAL), "<full>": article("b" * bypassed_length)})
        bypass = BypassResult(success=True, source=StrategySource.GOOGLEBOT, html="<full>")
        pipeline, orchestrator = stub_pipeline(
            config, fetched("<original>", PAYWALLED_URL), parser, bypass=bypass
        )

        with counter_delta("pagelift_paywall_detected_total", {"kind": "soft"}):
            result = await pipeline.load_article(PAYWALLED_URL)

        assert result.success
        orchestrator.try_bypass.assert_awaited_once_with(PAYWALLED_URL)
        if replaced:
            assert result.article.content.length == bypassed_length
            assert result.article.archive_source.service == "googlebot-ua"
        else:
            assert result.article.content.text_content == self.ORIGINAL
            assert result.article.archive_source is None

    @pytest.mark.asyncio
    async def test_unlisted_host_is_not_checked(self, config):
        parser = StubParser({"<original>": article(self.ORIGINAL)})
        pipeline, orchestrator = stub_pipeline(config, fetched("<original>"), parser)

        result = await pipeline.load_article(URL)

        assert result.success
        orchestrator.try_bypass.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_bypass_keeps_original(self, config):
        parser = StubParser({"<original>": article(self.ORIGINAL)})
        pipeline, _ = stub_pipeline(config, fetched("<original>", PAYWALLED_URL), parser)

        result = await pipeline.load_article(PAYWALLED_URL)

        assert result.success
        assert result.article.content.text_content == self.ORIGINAL


@pytest.mark.unit
class TestBrowserTab:
    @pytest.mark.asyncio
    async def test_blocked_page_read_from_open_tab(self, config):
        blocked = FetchError(FetchErrorKind.BLOCKED, "Access denied", status_code=403)
        parser = StubParser({"<tab>": article("tab text")})
        context = ExtractionContext(StubTabSource(html="<tab>"))
        pipeline, orchestrator = stub_pipeline(config, blocked, parser, context=context)

        result = await pipeline.load_article(URL)

        assert result.success
        assert result.article.archive_source.service == "browser-tab"
        orchestrator.try_bypass.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_parse_failure_falls_back_to_tab(self, config):
        parser = StubParser(
            {
                "<html>": ReadabilityError(ReadabilityErrorKind.NOT_READABLE, "nope"),
                "<tab>": article("tab text"),
            }
        )
        context = ExtractionContext(StubTabSource(html="<tab>"))
        pipeline, _ = stub_pipeline(config, fetched("<html>"), parser, context=context)

        result = await pipeline.load_article(URL)

        assert result.success
        assert result.article.bypassed_readability_check

    @pytest.mark.asyncio
    async def test_blocked_reports_extension_without_tab(self, config):
        blocked = FetchError(FetchErrorKind.BLOCKED, "Access denied", status_code=403)
        context = ExtractionContext(StubTabSource(available=True, html=None))
        pipeline, _ = stub_pipeline(config, blocked, StubParser({}), context=context)

        result = await pipeline.load_article(URL)

        assert result.status is ArticleStatus.BLOCKED
        assert result.has_browser_extension
        assert not result.found_tab
        assert result.bypass_error == "All bypass methods failed: x"


@pytest.mark.unit
class TestExtractionContext:
    """Availability checks with an override flag and a TTL cache."""

    @pytest.mark.asyncio
    async def test_availability_cached_within_ttl(self):
        now = [100.0]
        source = StubTabSource(available=True)
        context = ExtractionContext(source, availability_ttl=30.0, clock=lambda: now[0])

        assert await context.is_browser_tab_available()
        now[0] += 29.0
        assert await context.is_browser_tab_available()
        assert source.checks == 1

        now[0] += 1.0
        source.available = False
        assert not await context.is_browser_tab_available()
        assert source.checks == 2

    @pytest.mark.asyncio
    async def test_override_skips_availability_check(self):
        source = StubTabSource(available=True)
        context = ExtractionContext(source, browser_tab_available=False)

        assert not await context.is_browser_tab_available()
        assert await context.open_tab_html(URL) is None
        assert source.checks == 0

    @pytest.mark.asyncio
    async def test_no_source(self):
        context = ExtractionContext()

        assert not await context.is_browser_tab_available()
        assert await context.open_tab_html(URL) is None

    @pytest.mark.asyncio
    async def test_failing_availability_check_counts_as_unavailable(self):
        source = AsyncMock()
        source.is_available.side_effect = ConnectionError("socket gone")
        context = ExtractionContext(source)

        assert not await context.is_browser_tab_available()
