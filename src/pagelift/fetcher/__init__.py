from .archive import ArchiveFetcher, ArchiveFetchResult, format_wayback_timestamp, rewrite_wayback_urls
from .http_client import Fetcher, http_error

__all__ = [
    "ArchiveFetcher",
    "ArchiveFetchResult",
    "Fetcher",
    "format_wayback_timestamp",
    "http_error",
    "rewrite_wayback_urls",
]
