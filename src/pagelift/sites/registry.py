"""
Ordered registry of site extractors.

Dispatch is first-match-wins: an entry applies when its hostname pattern
matches and the extractor's ``can_extract()`` confirms the page structure.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Pattern, Tuple, Type

import structlog
from bs4 import BeautifulSoup

from pagelift.protocols import ExtractedMetadata
from pagelift.utils.urls import get_hostname

from .base import BaseExtractor
from .github import GitHubExtractor
from .hackernews import HackerNewsExtractor
from .medium import MediumExtractor
from .reddit import RedditExtractor

logger = structlog.get_logger(__name__)

EXTRACTORS: List[Tuple[Pattern[str], Type[BaseExtractor]]] = [
    (re.compile(r"^news\.ycombinator\.com$"), HackerNewsExtractor),
    (re.compile(r"^(.*\.)?github\.com$"), GitHubExtractor),
    (re.compile(r"^(.*\.)?reddit\.com$"), RedditExtractor),
    (re.compile(r"^(.*\.)?medium\.com$"), MediumExtractor),
]


def get_extractor(
    soup: BeautifulSoup,
    url: str,
    schema_org_data: Optional[Dict[str, Any]] = None,
    existing_metadata: Optional[ExtractedMetadata] = None,
) -> Optional[BaseExtractor]:
    """The first registered extractor able to handle ``url``, or None."""
    hostname = get_hostname(url)
    if not hostname:
        return None
    for pattern, extractor_cls in EXTRACTORS:
        if not pattern.search(hostname):
            continue
        try:
            extractor = extractor_cls(soup, url, schema_org_data, existing_metadata)
            if extractor.can_extract():
                return extractor
        except Exception as e:
            logger.warning(
                "Site extractor structure check failed", url=url, extractor=extractor_cls.__name__, error=str(e)
            )
    return None
