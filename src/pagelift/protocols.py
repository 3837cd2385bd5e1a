"""
Core contracts and dataclasses for the pagelift extraction pipeline.

Every value here is created and consumed within a single extraction request:
fetch results, bypass outcomes, cleaning reports, metadata and the final
article. Component boundaries exchange these values instead of raising, so a
caller can always inspect why a stage failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

# ============================================================================
# Enums
# ============================================================================


class FetchErrorKind(str, Enum):
    """Failure taxonomy for a single HTTP fetch."""

    NETWORK = "network"
    HTTP = "http"
    BLOCKED = "blocked"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class StrategySource(str, Enum):
    """Provenance of HTML obtained for a blocked URL."""

    GOOGLEBOT = "googlebot-ua"
    BINGBOT = "bingbot-ua"
    SOCIAL_REFERRER = "social-referrer"
    MINIMAL_REFETCH = "minimal-refetch"
    ARCHIVE_IS = "archive-service-a"
    WAYBACK = "archive-service-b"
    BROWSER_TAB = "browser-tab"
    NONE = "none"


class ReadabilityErrorKind(str, Enum):
    NOT_READABLE = "not-readable"
    PARSE_FAILED = "parse-failed"
    EMPTY_CONTENT = "empty-content"


# ============================================================================
# Network
# ============================================================================


@dataclass(frozen=True)
class FetchIdentity:
    """Header set and timeout a request is issued with."""

    name: str
    headers: Mapping[str, str]
    timeout: float


@dataclass(frozen=True)
class FetchResult:
    html: str
    final_url: str
    content_length: int
    content_type: str


@dataclass(frozen=True)
class FetchError:
    kind: FetchErrorKind
    message: str
    status_code: Optional[int] = None
    final_url: Optional[str] = None

    @property
    def is_blocked(self) -> bool:
        return self.kind is FetchErrorKind.BLOCKED


@dataclass(frozen=True)
class BypassResult:
    """Outcome of the bypass orchestrator."""

    success: bool
    source: StrategySource = StrategySource.NONE
    html: Optional[str] = None
    archive_url: Optional[str] = None
    snapshot_timestamp: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ArchiveSource:
    """Provenance details surfaced next to a bypassed article."""

    service: str
    url: Optional[str]
    timestamp: Optional[str]
    retrieved_at: str


# ============================================================================
# Extraction
# ============================================================================


@dataclass(frozen=True)
class CleaningResult:
    """Diagnostics from the HTML pre-cleaner."""

    html: str
    removed_count: int = 0
    lazy_images_resolved: int = 0
    link_dense_removed: int = 0
    structured_article_found: bool = False
    site_config_applied: Optional[str] = None


@dataclass
class ExtractedMetadata:
    """Page metadata. Every field is independently optional."""

    title: Optional[str] = None
    author: Optional[str] = None
    published: Optional[str] = None
    modified: Optional[str] = None
    site_name: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    favicon: Optional[str] = None
    url: Optional[str] = None
    domain: Optional[str] = None
    structured_data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ArticleContent:
    """Terminal artifact of a successful parse."""

    title: str
    content_html: str
    text_content: str
    excerpt: str = ""
    byline: Optional[str] = None
    site_name: Optional[str] = None
    author: Optional[str] = None
    published: Optional[str] = None
    image: Optional[str] = None
    description: Optional[str] = None
    favicon: Optional[str] = None
    length: int = 0
    archive_source: Optional[ArchiveSource] = None


@dataclass(frozen=True)
class ReadabilityError:
    kind: ReadabilityErrorKind
    message: str


@dataclass(frozen=True)
class FormattedArticle:
    markdown: str
    title: str


@dataclass(frozen=True)
class ExtractionError:
    """Caller-visible failure of ``extract_article``."""

    kind: str
    message: str
    url: Optional[str] = None
    status_code: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)


# ============================================================================
# Collaborators
# ============================================================================


@runtime_checkable
class BrowserTabSource(Protocol):
    """Channel to an external browser that can hand over rendered HTML."""

    async def is_available(self) -> bool:
        """Whether the browser channel is reachable at all."""
        ...

    async def get_open_tab_html(self, url: str) -> Optional[str]:
        """HTML of an open tab showing ``url``, or None if no tab matches."""
        ...
