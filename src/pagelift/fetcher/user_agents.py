"""
Request identities: the header sets the fetcher presents to a site.

The default identity mirrors a desktop Chrome navigation. Bypass identities
swap in search-engine crawler user agents, a social-media referrer, or a
near-empty header set.
"""

from __future__ import annotations

from typing import Dict
from urllib.parse import urlsplit

from pagelift.config.config import CHROME_USER_AGENT, FetcherConfig
from pagelift.protocols import FetchIdentity

GOOGLEBOT_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 6.0.1; Nexus 5X Build/MMB29P) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/127.0.6533.119 Mobile Safari/537.36 "
    "(compatible; Googlebot/2.1; +http://www.google.com/bot.html)"
)

BINGBOT_USER_AGENT = "Mozilla/5.0 (compatible; bingbot/2.0; +http://www.bing.com/bingbot.htm)"

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

BROWSER_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8"


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def browser_identity(url: str, config: FetcherConfig) -> FetchIdentity:
    """Full desktop-browser fingerprint used for the first, direct fetch."""
    headers = {
        "User-Agent": config.user_agent,
        "Accept": BROWSER_ACCEPT,
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "max-age=0",
        "DNT": "1",
        "Referer": _origin(url) + "/",
        "Sec-Ch-Ua": '"Not_A Brand";v="8", "Chromium";v="131", "Google Chrome";v="131"',
        "Sec-Ch-Ua-Mobile": "?0",
        "Sec-Ch-Ua-Platform": '"macOS"',
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "same-origin",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
    }
    return FetchIdentity(name="browser", headers=headers, timeout=config.timeout)


def _crawler_headers(user_agent: str) -> Dict[str, str]:
    return {
        "User-Agent": user_agent,
        "Accept": HTML_ACCEPT,
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
    }


def googlebot_identity(config: FetcherConfig) -> FetchIdentity:
    return FetchIdentity(
        name="googlebot", headers=_crawler_headers(GOOGLEBOT_USER_AGENT), timeout=config.crawler_timeout
    )


def bingbot_identity(config: FetcherConfig) -> FetchIdentity:
    return FetchIdentity(name="bingbot", headers=_crawler_headers(BINGBOT_USER_AGENT), timeout=config.crawler_timeout)


def referrer_identity(referrer: str, config: FetcherConfig) -> FetchIdentity:
    headers = {
        "User-Agent": config.user_agent,
        "Accept": HTML_ACCEPT,
        "Referer": referrer,
    }
    return FetchIdentity(name="social-referrer", headers=headers, timeout=config.referrer_timeout)


def minimal_identity(config: FetcherConfig) -> FetchIdentity:
    """Only an Accept header; lets the server decide what to serve."""
    return FetchIdentity(name="minimal", headers={"Accept": HTML_ACCEPT}, timeout=config.minimal_timeout)


def archive_identity(timeout: float) -> FetchIdentity:
    headers = {
        "User-Agent": CHROME_USER_AGENT,
        "Accept": HTML_ACCEPT,
        "Accept-Language": "en-US,en;q=0.5",
    }
    return FetchIdentity(name="archive", headers=headers, timeout=timeout)


def json_identity(timeout: float) -> FetchIdentity:
    return FetchIdentity(name="json-api", headers={"Accept": "application/json"}, timeout=timeout)
