"""
Snapshot-service fetchers used as bypass sources of last resort.

archive.is resolves ``/newest/<url>`` to the most recent snapshot through a
redirect and is tried across its mirror domains. The Wayback Machine is
queried through its availability API, and the returned snapshot has its
proxied resource URLs rewritten back to the live origin.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from urllib.parse import quote

import structlog

from pagelift.config.config import ArchiveConfig
from pagelift.protocols import FetchError, FetchErrorKind
from pagelift.utils.urls import is_valid_url

from .http_client import Fetcher
from .user_agents import archive_identity, json_identity

logger = structlog.get_logger(__name__)

ARCHIVE_IS_HOST_MARKERS = ("archive.is/", "archive.today/", "archive.ph/")
ARCHIVE_TIMESTAMP_PATTERN = re.compile(r"archive\.(?:is|today|ph)/([0-9]{4}\.[0-9]{2}\.[0-9]{2}-[0-9]+)")
WAYBACK_URL_PATTERN = re.compile(r"https?://web\.archive\.org/web/\d+(?:id_|im_|js_|cs_|if_|mp_)?/?(https?://[^\"'\s<>]+)")
WAYBACK_AVAILABILITY_API = "https://archive.org/wayback/available?url={url}"


@dataclass(frozen=True)
class ArchiveFetchResult:
    success: bool
    service: str
    html: Optional[str] = None
    archive_url: Optional[str] = None
    timestamp: Optional[str] = None
    error: Optional[str] = None


def is_archive_is_page(url: str) -> bool:
    """A real snapshot page, not the ``/newest/`` redirect or a search page."""
    return any(marker in url for marker in ARCHIVE_IS_HOST_MARKERS) and "/newest/" not in url


def archive_is_timestamp(url: str) -> Optional[str]:
    match = ARCHIVE_TIMESTAMP_PATTERN.search(url)
    return match.group(1) if match else None


def rewrite_wayback_urls(html: str) -> str:
    """Point snapshot-proxied URLs back at the live origin."""
    return WAYBACK_URL_PATTERN.sub(lambda m: m.group(1), html)


def format_wayback_timestamp(timestamp: Optional[str]) -> Optional[str]:
    """``YYYYMMDDhhmmss`` -> ``Month D, YYYY``; anything unparseable is returned unchanged."""
    if not timestamp or len(timestamp) < 8:
        return timestamp
    try:
        date = datetime.strptime(timestamp[:8], "%Y%m%d")
    except ValueError:
        return timestamp
    return f"{date:%B} {date.day}, {date.year}"


class ArchiveFetcher:
    """Fetches archived copies of a page from archive.is and the Wayback Machine."""

    def __init__(self, fetcher: Fetcher, config: ArchiveConfig):
        self.fetcher = fetcher
        self.config = config

    async def fetch_archive_is(self, url: str) -> ArchiveFetchResult:
        if not is_valid_url(url):
            return ArchiveFetchResult(success=False, service="archive.is", error="Invalid URL provided")

        identity = archive_identity(self.config.archive_is_timeout)
        domains = self.config.archive_is_domains
        for index, domain in enumerate(domains):
            is_last_domain = index == len(domains) - 1
            request_url = f"https://{domain}/newest/{quote(url, safe='')}"
            outcome = await self.fetcher.fetch(request_url, identity)

            if isinstance(outcome, FetchError):
                final_url = outcome.final_url or ""
                if outcome.status_code == 429 and is_archive_is_page(final_url):
                    # Rate limited after the redirect resolved: one direct fetch of the snapshot.
                    direct = await self.fetcher.fetch(final_url, identity)
                    if not isinstance(direct, FetchError):
                        logger.info("archive.is snapshot fetched directly", url=url, archive_url=final_url, domain=domain)
                        return ArchiveFetchResult(
                            success=True,
                            service="archive.is",
                            html=direct.html,
                            archive_url=final_url,
                            timestamp=archive_is_timestamp(final_url),
                        )
                    logger.info("archive.is direct fetch failed", url=url, archive_url=final_url, reason=direct.message)
                    continue
                if not is_last_domain:
                    continue
                if outcome.status_code is not None:
                    error = f"Archive.is returned HTTP {outcome.status_code}"
                elif outcome.kind is FetchErrorKind.TIMEOUT:
                    error = "Archive.is request timed out"
                else:
                    error = outcome.message
                return ArchiveFetchResult(success=False, service="archive.is", error=error)

            if not is_archive_is_page(outcome.final_url):
                if is_last_domain:
                    return ArchiveFetchResult(
                        success=False, service="archive.is", error="No archived version found on archive.is"
                    )
                continue

            timestamp = archive_is_timestamp(outcome.final_url)
            logger.info(
                "archive.is snapshot found",
                url=url,
                archive_url=outcome.final_url,
                domain=domain,
                timestamp=timestamp,
                content_length=outcome.content_length,
            )
            return ArchiveFetchResult(
                success=True,
                service="archive.is",
                html=outcome.html,
                archive_url=outcome.final_url,
                timestamp=timestamp,
            )

        return ArchiveFetchResult(success=False, service="archive.is", error="All archive.is domains failed")

    async def fetch_wayback(self, url: str) -> ArchiveFetchResult:
        if not is_valid_url(url):
            return ArchiveFetchResult(success=False, service="wayback", error="Invalid URL provided")

        api_url = WAYBACK_AVAILABILITY_API.format(url=quote(url, safe=""))
        availability = await self.fetcher.fetch(api_url, json_identity(self.config.wayback_api_timeout))
        if isinstance(availability, FetchError):
            if availability.status_code is not None:
                error = f"Wayback availability check failed: HTTP {availability.status_code}"
            elif availability.kind is FetchErrorKind.TIMEOUT:
                error = "Wayback availability check timed out"
            else:
                error = availability.message
            return ArchiveFetchResult(success=False, service="wayback", error=error)

        try:
            data = json.loads(availability.html)
        except ValueError:
            return ArchiveFetchResult(
                success=False, service="wayback", error="Invalid response from Wayback availability API"
            )

        snapshots = data.get("archived_snapshots") if isinstance(data, dict) else None
        closest = (snapshots or {}).get("closest") or {}
        if not closest.get("available") or not closest.get("url"):
            logger.info("No Wayback snapshot available", url=url)
            return ArchiveFetchResult(
                success=False, service="wayback", error="No archived version found on Wayback Machine"
            )

        snapshot_url = closest["url"]
        timestamp = closest.get("timestamp")
        logger.debug("Wayback snapshot found", url=url, snapshot_url=snapshot_url, timestamp=timestamp)

        snapshot = await self.fetcher.fetch(snapshot_url, archive_identity(self.config.wayback_fetch_timeout))
        if isinstance(snapshot, FetchError):
            if snapshot.status_code is not None:
                error = f"Failed to fetch Wayback snapshot: HTTP {snapshot.status_code}"
            elif snapshot.kind is FetchErrorKind.TIMEOUT:
                error = "Wayback snapshot fetch timed out"
            else:
                error = snapshot.message
            return ArchiveFetchResult(success=False, service="wayback", error=error)

        html = rewrite_wayback_urls(snapshot.html)
        formatted = format_wayback_timestamp(timestamp)
        logger.info(
            "Wayback snapshot fetched",
            url=url,
            archive_url=snapshot_url,
            timestamp=formatted,
            urls_rewritten=len(html) != len(snapshot.html),
        )
        return ArchiveFetchResult(
            success=True, service="wayback", html=html, archive_url=snapshot_url, timestamp=formatted
        )
