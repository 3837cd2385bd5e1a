"""Site-specific extractors and their registry."""

from .base import BaseExtractor, ExtractorMetadata, ExtractorResult, nest_by_depth
from .github import GitHubExtractor
from .hackernews import HackerNewsExtractor
from .medium import MediumExtractor
from .reddit import RedditExtractor
from .registry import EXTRACTORS, get_extractor

__all__ = [
    "BaseExtractor",
    "EXTRACTORS",
    "ExtractorMetadata",
    "ExtractorResult",
    "GitHubExtractor",
    "HackerNewsExtractor",
    "MediumExtractor",
    "RedditExtractor",
    "get_extractor",
    "nest_by_depth",
]
