"""
URL helpers shared by the fetcher, cleaner and extractors.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

URL_IN_TEXT_PATTERN = re.compile(r"https?://[^\s]+", re.IGNORECASE)
TRAILING_PUNCTUATION_PATTERN = re.compile(r"[.,;!?)]+$")


def is_valid_url(text: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(text.strip())
    except (ValueError, AttributeError):
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def extract_url_from_text(text: str) -> Optional[str]:
    """Return the first valid http(s) URL embedded in free text."""
    for match in URL_IN_TEXT_PATTERN.findall(text or ""):
        cleaned = TRAILING_PUNCTUATION_PATTERN.sub("", match)
        if is_valid_url(cleaned):
            return cleaned
    return None


def get_hostname(url: str, *, strip_www: bool = True) -> Optional[str]:
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return None
    if not hostname:
        return None
    hostname = hostname.lower()
    if strip_www and hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def host_matches(hostname: Optional[str], domains: Iterable[str]) -> bool:
    """Exact or subdomain match of ``hostname`` against any of ``domains``."""
    if not hostname:
        return False
    return any(hostname == domain or hostname.endswith(f".{domain}") for domain in domains)


def absolutize(value: str, base_url: str) -> str:
    try:
        return urljoin(base_url, value)
    except ValueError:
        return value


def make_urls_absolute(soup: BeautifulSoup, base_url: str) -> int:
    """Rewrite relative ``href``/``src`` attributes in place. Returns the rewrite count."""
    rewritten = 0
    for attr in ("href", "src"):
        for element in soup.find_all(attrs={attr: True}):
            value = element.get(attr)
            if not isinstance(value, str):
                continue
            value = value.strip()
            if not value or value.startswith(("#", "data:", "javascript:", "mailto:", "tel:")):
                continue
            absolute = absolutize(value, base_url)
            if absolute != value:
                element[attr] = absolute
                rewritten += 1
    return rewritten
