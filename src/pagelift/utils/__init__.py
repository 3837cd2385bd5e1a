"""Utility modules for pagelift."""

from .fallback import Failure, FallbackOutcome, first_success, first_success_sync
from .text import html_to_text, normalize_whitespace
from .urls import extract_url_from_text, get_hostname, host_matches, is_valid_url, make_urls_absolute

__all__ = [
    "Failure",
    "FallbackOutcome",
    "first_success",
    "first_success_sync",
    "html_to_text",
    "normalize_whitespace",
    "extract_url_from_text",
    "get_hostname",
    "host_matches",
    "is_valid_url",
    "make_urls_absolute",
]
