"""
Single-shot HTML fetcher with identity-driven headers and failure classification.
"""

from __future__ import annotations

import asyncio
import time
from typing import Dict, Optional, Union
from urllib.parse import urlparse

import aiohttp
import structlog

from pagelift.config.config import Config
from pagelift.observability import histogram, increment
from pagelift.protocols import FetchError, FetchErrorKind, FetchIdentity, FetchResult

from .user_agents import browser_identity

logger = structlog.get_logger(__name__)

# status -> (kind, message)
HTTP_ERRORS: Dict[int, tuple[FetchErrorKind, str]] = {
    401: (FetchErrorKind.BLOCKED, "Access denied — this page requires authentication"),
    403: (FetchErrorKind.BLOCKED, "Access denied — this page requires authentication"),
    404: (FetchErrorKind.HTTP, "Page not found"),
    410: (FetchErrorKind.HTTP, "This page no longer exists"),
    429: (FetchErrorKind.BLOCKED, "Too many requests — please try again later"),
    451: (FetchErrorKind.BLOCKED, "Unavailable for legal reasons"),
    500: (FetchErrorKind.HTTP, "Server error — the website is having issues"),
    502: (FetchErrorKind.HTTP, "Server error — the website is having issues"),
    503: (FetchErrorKind.HTTP, "Server error — the website is having issues"),
    504: (FetchErrorKind.HTTP, "Server error — the website is having issues"),
}

FetchOutcome = Union[FetchResult, FetchError]


def http_error(status: int, final_url: Optional[str] = None) -> FetchError:
    """Map a non-2xx status onto the fetch error taxonomy."""
    kind, message = HTTP_ERRORS.get(status, (FetchErrorKind.HTTP, f"HTTP error {status}"))
    return FetchError(kind=kind, message=message, status_code=status, final_url=final_url)


def classify_exception(exc: BaseException) -> FetchError:
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return FetchError(FetchErrorKind.TIMEOUT, "Request timed out — the page took too long to load")
    if isinstance(exc, (aiohttp.ClientConnectionError, aiohttp.InvalidURL, OSError)):
        return FetchError(FetchErrorKind.NETWORK, "Unable to reach the website — check your connection")
    return FetchError(FetchErrorKind.UNKNOWN, str(exc) or type(exc).__name__)


class Fetcher:
    """
    Issues one GET per call. No retries happen here; retry and fallback
    belong to the bypass orchestrator.
    """

    def __init__(self, config: Config, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self.fetcher_config = config.fetcher
        self.session = session
        self._owns_session = session is None

    async def initialize(self) -> None:
        """Initialize the HTTP client session."""
        if self.session is None:
            self.session = aiohttp.ClientSession()
            self._owns_session = True
            logger.debug("HTTP session initialized")

    async def close(self) -> None:
        if self.session and self._owns_session:
            await self.session.close()
        self.session = None

    async def __aenter__(self) -> "Fetcher":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def default_identity(self, url: str) -> FetchIdentity:
        return browser_identity(url, self.fetcher_config)

    async def fetch(self, url: str, identity: Optional[FetchIdentity] = None) -> FetchOutcome:
        """
        Fetch ``url`` once with the given identity.

        Args:
            url: Absolute http(s) URL
            identity: Headers and timeout; defaults to the desktop browser identity

        Returns:
            FetchResult on a 2xx response, otherwise a classified FetchError
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            logger.warning("Malformed URL", url=url)
            return FetchError(FetchErrorKind.UNKNOWN, f"Invalid URL: {url}")

        if identity is None:
            identity = self.default_identity(url)
        await self.initialize()
        assert self.session is not None

        start_time = time.time()
        logger.debug("Fetching", url=url, identity=identity.name, timeout=identity.timeout)
        outcome: FetchOutcome
        try:
            async with asyncio.timeout(identity.timeout):
                async with self.session.get(url, headers=dict(identity.headers), allow_redirects=True) as response:
                    final_url = str(response.url)
                    if not 200 <= response.status < 300:
                        outcome = http_error(response.status, final_url)
                    else:
                        html = await response.text(errors="replace")
                        outcome = FetchResult(
                            html=html,
                            final_url=final_url,
                            content_length=len(html),
                            content_type=response.headers.get("Content-Type", ""),
                        )
        except Exception as e:
            outcome = classify_exception(e)

        elapsed = time.time() - start_time
        histogram("stage_duration_seconds", elapsed, {"stage": "fetch"})
        if isinstance(outcome, FetchResult):
            increment("fetch_requests", labels={"identity": identity.name, "outcome": "success"})
            logger.info(
                "Fetch succeeded",
                url=url,
                identity=identity.name,
                final_url=outcome.final_url,
                content_length=outcome.content_length,
                elapsed=round(elapsed, 3),
            )
        else:
            increment("fetch_requests", labels={"identity": identity.name, "outcome": outcome.kind.value})
            logger.info(
                "Fetch failed",
                url=url,
                identity=identity.name,
                error_type=outcome.kind.value,
                status=outcome.status_code,
                message=outcome.message,
            )
        return outcome
