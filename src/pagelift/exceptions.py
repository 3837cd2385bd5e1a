"""
Exception types for pagelift.

Expected failures (blocked fetches, unreadable pages, exhausted bypass
strategies) travel as result values; these exceptions cover misconfiguration
and the few places where a caller explicitly asks for raising behaviour.
"""

from __future__ import annotations

from typing import List, Tuple


class PageliftError(Exception):
    """Base class for all pagelift exceptions."""


class ConfigurationError(PageliftError):
    """A data table or configuration value is unusable."""


class MarkdownConversionError(PageliftError):
    """The HTML to Markdown converter raised."""


class BypassFailure(PageliftError):
    """Every bypass strategy failed for a URL."""

    def __init__(self, url: str, failures: List[Tuple[str, str]]) -> None:
        self.url = url
        self.failures = failures
        super().__init__(format_bypass_failures(failures))


def format_bypass_failures(failures: List[Tuple[str, str]]) -> str:
    reasons = "; ".join(f"{label}: {message}" for label, message in failures)
    return f"All bypass methods failed: {reasons}"
