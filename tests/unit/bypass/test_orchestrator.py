"""
Tests for the bypass orchestrator.

Strategies are replaced by fakes so the tests exercise ordering, short-circuit
and error aggregation without network access. One test drives the real
identity strategies through aioresponses.
"""

from typing import List
from unittest.mock import AsyncMock

import pytest
from aioresponses import aioresponses

from pagelift.bypass.orchestrator import BypassOrchestrator, Strategy, StrategyHit, create_archive_source
from pagelift.exceptions import BypassFailure
from pagelift.fetcher.archive import ArchiveFetchResult
from pagelift.protocols import BypassResult, StrategySource
from pagelift.utils.fallback import Failure
from tests.helpers import counter_delta

URL = "https://www.wsj.com/articles/markets-rally"

LABELS = ["Googlebot", "Bingbot", "Social Referrer", "WallHopper", "archive.is", "Wayback"]
SOURCES = [
    StrategySource.GOOGLEBOT,
    StrategySource.BINGBOT,
    StrategySource.SOCIAL_REFERRER,
    StrategySource.MINIMAL_REFETCH,
    StrategySource.ARCHIVE_IS,
    StrategySource.WAYBACK,
]


def fake_strategies(outcomes, calls: List[str]) -> List[Strategy]:
    strategies = []
    for source, label, outcome in zip(SOURCES, LABELS, outcomes):

        async def run(url, source=source, outcome=outcome):
            calls.append(source.value)
            return outcome

        strategies.append(Strategy(source, label, run))
    return strategies


@pytest.mark.unit
class TestBypassOrdering:
    """Strategies run cheapest first and stop at the first success."""

    @pytest.mark.asyncio
    async def test_third_strategy_wins(self, config, fetcher):
        calls: List[str] = []
        outcomes = [
            Failure("Access denied"),
            Failure("Access denied"),
            StrategyHit(html="<html>full article</html>"),
            StrategyHit(html="never"),
            StrategyHit(html="never"),
            StrategyHit(html="never"),
        ]
        orchestrator = BypassOrchestrator(config, fetcher, strategies=fake_strategies(outcomes, calls))

        result = await orchestrator.try_bypass(URL)

        assert result.success
        assert result.source is StrategySource.SOCIAL_REFERRER
        assert result.html == "<html>full article</html>"
        assert calls == ["googlebot-ua", "bingbot-ua", "social-referrer"]

    @pytest.mark.asyncio
    async def test_all_failures_are_aggregated_in_order(self, config, fetcher):
        calls: List[str] = []
        outcomes = [Failure(f"reason {i}") for i in range(6)]
        orchestrator = BypassOrchestrator(config, fetcher, strategies=fake_strategies(outcomes, calls))

        result = await orchestrator.try_bypass(URL)

        assert not result.success
        assert result.source is StrategySource.NONE
        assert result.html is None
        assert result.error.startswith("All bypass methods failed: ")
        positions = [result.error.index(f"{label}: reason {i}") for i, label in enumerate(LABELS)]
        assert positions == sorted(positions)
        assert len(calls) == 6

    @pytest.mark.asyncio
    async def test_raising_strategy_does_not_abort(self, config, fetcher):
        calls: List[str] = []

        async def explode(url):
            calls.append("explode")
            raise RuntimeError("socket closed")

        strategies = fake_strategies([None, StrategyHit(html="<p>ok</p>")], calls)
        strategies[0] = Strategy(StrategySource.GOOGLEBOT, "Googlebot", explode)
        orchestrator = BypassOrchestrator(config, fetcher, strategies=strategies)

        result = await orchestrator.try_bypass(URL)

        assert result.source is StrategySource.BINGBOT
        assert calls == ["explode", "bingbot-ua"]

    @pytest.mark.asyncio
    async def test_require_bypass_raises_with_failures(self, config, fetcher):
        outcomes = [Failure("nope")] * 6
        orchestrator = BypassOrchestrator(config, fetcher, strategies=fake_strategies(outcomes, []))

        with pytest.raises(BypassFailure) as exc_info:
            await orchestrator.require_bypass(URL)

        assert exc_info.value.url == URL
        assert [label for label, _ in exc_info.value.failures] == LABELS
        assert str(exc_info.value).startswith("All bypass methods failed")

    @pytest.mark.asyncio
    async def test_attempt_metrics(self, config, fetcher):
        outcomes = [Failure("nope"), StrategyHit(html="<p>x</p>")]
        orchestrator = BypassOrchestrator(config, fetcher, strategies=fake_strategies(outcomes, []))

        with counter_delta("pagelift_bypass_attempts_total", {"strategy": "bingbot-ua", "outcome": "success"}):
            await orchestrator.try_bypass(URL)

    def test_configured_order_follows_config(self, config, fetcher):
        config.bypass.strategies = ["archive-service-b", "googlebot-ua"]

        orchestrator = BypassOrchestrator(config, fetcher)

        assert [s.label for s in orchestrator.strategies] == ["Wayback", "Googlebot"]

    def test_default_order(self, config, fetcher):
        orchestrator = BypassOrchestrator(config, fetcher)
        assert [s.label for s in orchestrator.strategies] == LABELS


@pytest.mark.unit
class TestBuiltinStrategies:
    """The real strategies, with HTTP faked."""

    @pytest.mark.asyncio
    async def test_googlebot_identity_passes(self, config, fetcher):
        with aioresponses() as m:
            m.get(URL, status=200, body="<html>crawler view</html>")

            result = await BypassOrchestrator(config, fetcher).try_bypass(URL)

            request = next(iter(m.requests.values()))[0]
        assert result.source is StrategySource.GOOGLEBOT
        assert "Googlebot" in request.kwargs["headers"]["User-Agent"]

    @pytest.mark.asyncio
    async def test_social_referrer_walks_referrers(self, config, fetcher):
        config.bypass.strategies = ["social-referrer"]
        with aioresponses() as m:
            m.get(URL, status=403)
            m.get(URL, status=200, body="<html>from facebook</html>")

            result = await BypassOrchestrator(config, fetcher).try_bypass(URL)

            sent = [call.kwargs["headers"]["Referer"] for call in next(iter(m.requests.values()))]
        assert result.success
        assert result.html == "<html>from facebook</html>"
        assert sent == ["https://twitter.com/", "https://www.facebook.com/"]

    @pytest.mark.asyncio
    async def test_archive_strategies_carry_snapshot_details(self, config, fetcher):
        config.bypass.strategies = ["archive-service-a", "archive-service-b"]
        archive = AsyncMock()
        archive.fetch_archive_is.return_value = ArchiveFetchResult(
            success=False, service="archive.is", error="No archived version found on archive.is"
        )
        archive.fetch_wayback.return_value = ArchiveFetchResult(
            success=True,
            service="wayback",
            html="<html>snapshot</html>",
            archive_url="https://web.archive.org/web/20240105120000/" + URL,
            timestamp="January 5, 2024",
        )

        result = await BypassOrchestrator(config, fetcher, archive_fetcher=archive).try_bypass(URL)

        assert result.source is StrategySource.WAYBACK
        assert result.archive_url.startswith("https://web.archive.org/")
        assert result.snapshot_timestamp == "January 5, 2024"


@pytest.mark.unit
class TestArchiveSource:
    def test_created_for_success(self):
        source = create_archive_source(
            BypassResult(success=True, source=StrategySource.GOOGLEBOT, html="<html></html>")
        )

        assert source.service == "googlebot-ua"
        assert source.url is None
        assert source.retrieved_at

    def test_none_for_failure(self):
        assert create_archive_source(BypassResult(success=False, error="x")) is None
