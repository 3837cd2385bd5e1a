"""
Bypass orchestrator: obtains HTML for a blocked URL by trying alternative
network identities and snapshot services, cheapest first.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

import structlog

from pagelift.config.config import Config
from pagelift.exceptions import BypassFailure, format_bypass_failures
from pagelift.fetcher.archive import ArchiveFetcher, ArchiveFetchResult
from pagelift.fetcher.http_client import Fetcher
from pagelift.fetcher.user_agents import bingbot_identity, googlebot_identity, minimal_identity, referrer_identity
from pagelift.observability import histogram, increment
from pagelift.protocols import ArchiveSource, BypassResult, FetchError, FetchIdentity, StrategySource
from pagelift.utils.fallback import Failure, first_success

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StrategyHit:
    html: str
    archive_url: Optional[str] = None
    timestamp: Optional[str] = None


StrategyOutcome = Union[StrategyHit, Failure]


@dataclass(frozen=True)
class Strategy:
    """One named way of obtaining HTML for a URL."""

    source: StrategySource
    label: str
    run: Callable[[str], Awaitable[StrategyOutcome]]


class BypassOrchestrator:
    """
    Runs bypass strategies sequentially and stops at the first one that
    returns HTML. Every failure is logged and kept for the aggregated report.
    """

    def __init__(
        self,
        config: Config,
        fetcher: Fetcher,
        archive_fetcher: Optional[ArchiveFetcher] = None,
        strategies: Optional[Sequence[Strategy]] = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.archive_fetcher = archive_fetcher or ArchiveFetcher(fetcher, config.archive)
        self.logger = logger.bind(component="BypassOrchestrator")
        if strategies is None:
            strategies = self._configured_strategies()
        self.strategies: List[Strategy] = list(strategies)

    def _configured_strategies(self) -> List[Strategy]:
        available: Dict[str, Strategy] = {
            s.source.value: s
            for s in (
                Strategy(StrategySource.GOOGLEBOT, "Googlebot", self._googlebot),
                Strategy(StrategySource.BINGBOT, "Bingbot", self._bingbot),
                Strategy(StrategySource.SOCIAL_REFERRER, "Social Referrer", self._social_referrer),
                Strategy(StrategySource.MINIMAL_REFETCH, "WallHopper", self._minimal_refetch),
                Strategy(StrategySource.ARCHIVE_IS, "archive.is", self._archive_is),
                Strategy(StrategySource.WAYBACK, "Wayback", self._wayback),
            )
        }
        return [available[name] for name in self.config.bypass.strategies]

    # --- strategies -------------------------------------------------------

    async def _fetch_as(self, url: str, identity: FetchIdentity) -> StrategyOutcome:
        outcome = await self.fetcher.fetch(url, identity)
        if isinstance(outcome, FetchError):
            return Failure(outcome.message)
        return StrategyHit(html=outcome.html)

    async def _googlebot(self, url: str) -> StrategyOutcome:
        return await self._fetch_as(url, googlebot_identity(self.config.fetcher))

    async def _bingbot(self, url: str) -> StrategyOutcome:
        return await self._fetch_as(url, bingbot_identity(self.config.fetcher))

    async def _social_referrer(self, url: str) -> StrategyOutcome:
        for referrer in self.config.fetcher.social_referrers:
            outcome = await self.fetcher.fetch(url, referrer_identity(referrer, self.config.fetcher))
            if not isinstance(outcome, FetchError):
                self.logger.debug("Social referrer accepted", url=url, referrer=referrer)
                return StrategyHit(html=outcome.html)
        return Failure("All social referrer attempts failed")

    async def _minimal_refetch(self, url: str) -> StrategyOutcome:
        return await self._fetch_as(url, minimal_identity(self.config.fetcher))

    @staticmethod
    def _from_archive(result: ArchiveFetchResult) -> StrategyOutcome:
        if result.success and result.html:
            return StrategyHit(html=result.html, archive_url=result.archive_url, timestamp=result.timestamp)
        return Failure(result.error or "Unknown error")

    async def _archive_is(self, url: str) -> StrategyOutcome:
        return self._from_archive(await self.archive_fetcher.fetch_archive_is(url))

    async def _wayback(self, url: str) -> StrategyOutcome:
        return self._from_archive(await self.archive_fetcher.fetch_wayback(url))

    # --- orchestration ----------------------------------------------------

    def _attempt(self, strategy: Strategy, url: str) -> Callable[[], Awaitable[StrategyOutcome]]:
        async def run() -> StrategyOutcome:
            self.logger.info("Trying bypass strategy", url=url, strategy=strategy.source.value)
            outcome = await strategy.run(url)
            increment(
                "bypass_attempts",
                labels={
                    "strategy": strategy.source.value,
                    "outcome": "failure" if isinstance(outcome, Failure) else "success",
                },
            )
            return outcome

        return run

    async def try_bypass(self, url: str) -> BypassResult:
        """
        Try each strategy in order until one yields HTML.

        Returns:
            A successful BypassResult naming the winning strategy, or a failed
            one whose error lists every strategy's reason.
        """
        result, _ = await self._bypass(url)
        return result

    async def require_bypass(self, url: str) -> BypassResult:
        """Like :meth:`try_bypass` but raises :class:`BypassFailure` on exhaustion."""
        result, failures = await self._bypass(url)
        if not result.success:
            raise BypassFailure(url, failures)
        return result

    async def _bypass(self, url: str) -> Tuple[BypassResult, List[Tuple[str, str]]]:
        start_time = time.time()
        by_source = {s.source.value: s for s in self.strategies}
        self.logger.info("Starting bypass", url=url, strategies=list(by_source))

        outcome = await first_success(
            [(s.source.value, self._attempt(s, url)) for s in self.strategies], component="bypass"
        )
        histogram("stage_duration_seconds", time.time() - start_time, {"stage": "bypass"})

        if outcome.succeeded and outcome.winner is not None:
            hit = outcome.value
            assert isinstance(hit, StrategyHit)
            self.logger.info(
                "Bypass succeeded",
                url=url,
                strategy=outcome.winner,
                archive_url=hit.archive_url,
                content_length=len(hit.html),
                failed_before=[name for name, _ in outcome.failures],
            )
            result = BypassResult(
                success=True,
                source=StrategySource(outcome.winner),
                html=hit.html,
                archive_url=hit.archive_url,
                snapshot_timestamp=hit.timestamp,
            )
            return result, []

        labelled = [(by_source[name].label, reason) for name, reason in outcome.failures]
        error = format_bypass_failures(labelled)
        self.logger.warning("All bypass strategies failed", url=url, errors=error)
        return BypassResult(success=False, source=StrategySource.NONE, error=error), labelled


def create_archive_source(result: BypassResult) -> Optional[ArchiveSource]:
    """Provenance record for a successful bypass; None otherwise."""
    if not result.success or result.source is StrategySource.NONE:
        return None
    return ArchiveSource(
        service=result.source.value,
        url=result.archive_url,
        timestamp=result.snapshot_timestamp,
        retrieved_at=datetime.now(timezone.utc).isoformat(),
    )
