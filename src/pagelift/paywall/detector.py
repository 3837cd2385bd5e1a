"""
Paywall detection.

Two detectors with different jobs:

* :func:`detect_paywall_in_text` is the pipeline's secondary defence against
  soft paywalls. It only fires for hosts on the known-paywalled allowlist, so
  an ordinary short page elsewhere is never flagged.
* :func:`detect_paywall_signals` is a diagnostic check that collects every
  kind of signal (short text, truncation marker, keyword, overlay element)
  for any URL.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Pattern, Tuple

import structlog
from bs4 import BeautifulSoup

from pagelift.catalog import PaywallCatalog, load_selector_catalog
from pagelift.cleaner.html_cleaner import select_safe
from pagelift.utils.urls import get_hostname, host_matches

logger = structlog.get_logger(__name__)

TRAILING_WINDOW = 100


@dataclass(frozen=True)
class PaywallTextResult:
    is_paywalled: bool
    matched_pattern: Optional[str] = None


@dataclass(frozen=True)
class PaywallDetectionResult:
    is_paywalled: bool
    signals: List[str] = field(default_factory=list)
    url: str = ""


@dataclass(frozen=True)
class _CompiledCatalog:
    catalog: PaywallCatalog
    truncation: Tuple[Pattern[str], ...]
    keywords: Tuple[Pattern[str], ...]


@lru_cache(maxsize=8)
def _compiled(path: Optional[Path] = None) -> _CompiledCatalog:
    catalog = load_selector_catalog(path).paywall
    return _CompiledCatalog(
        catalog=catalog,
        truncation=tuple(re.compile(p, re.IGNORECASE) for p in catalog.truncation_patterns),
        keywords=tuple(re.compile(p, re.IGNORECASE) for p in catalog.keywords),
    )


def is_known_paywalled_site(url: str, catalog_path: Optional[Path] = None) -> bool:
    return host_matches(get_hostname(url), _compiled(catalog_path).catalog.known_paywalled_domains)


def get_site_paywall_selectors(url: str, catalog_path: Optional[Path] = None) -> List[str]:
    hostname = get_hostname(url)
    for domain, selectors in _compiled(catalog_path).catalog.site_selectors.items():
        if host_matches(hostname, [domain]):
            return list(selectors)
    return []


def detect_paywall_in_text(text: str, url: str, catalog_path: Optional[Path] = None) -> PaywallTextResult:
    """
    Check extracted text for soft-paywall markers.

    Args:
        text: Plain text of the extracted article.
        url: Page URL; hosts outside the allowlist are never flagged.

    Returns:
        The first matching marker pattern, if any.
    """
    if not text or not is_known_paywalled_site(url, catalog_path):
        return PaywallTextResult(is_paywalled=False)

    compiled = _compiled(catalog_path)
    for pattern in compiled.keywords:
        if pattern.search(text):
            logger.info("Soft paywall marker found", url=url, pattern=pattern.pattern)
            return PaywallTextResult(is_paywalled=True, matched_pattern=pattern.pattern)
    return PaywallTextResult(is_paywalled=False)


def detect_paywall_signals(
    soup: BeautifulSoup, url: str, text: str, catalog_path: Optional[Path] = None
) -> PaywallDetectionResult:
    """Collect at most one signal of each kind; any signal means paywalled."""
    compiled = _compiled(catalog_path)
    signals: List[str] = []

    if 0 < len(text) < compiled.catalog.min_article_length:
        signals.append(f"short_content:{len(text)}_chars")

    tail = text[-TRAILING_WINDOW:]
    for pattern in compiled.truncation:
        if pattern.search(tail):
            signals.append(f"truncation_marker:{pattern.pattern}")
            break

    for pattern in compiled.keywords:
        if pattern.search(text):
            signals.append(f"paywall_keyword:{pattern.pattern}")
            break

    for selector in [*compiled.catalog.selectors, *get_site_paywall_selectors(url, catalog_path)]:
        if select_safe(soup, selector):
            signals.append(f"paywall_element:{selector}")
            break

    if signals:
        logger.info("Paywall signals detected", url=url, signals=signals)
    else:
        logger.debug("No paywall signals", url=url)
    return PaywallDetectionResult(is_paywalled=bool(signals), signals=signals, url=url)
