"""
pagelift - Article extraction and paywall-bypass pipeline.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .pipeline import ArticlePipeline, ArticleStatus, ExtractionContext, LoadArticleOptions, LoadArticleResult

__all__ = [
    "__version__",
    "ArticlePipeline",
    "ArticleStatus",
    "Config",
    "ExtractionContext",
    "LoadArticleOptions",
    "LoadArticleResult",
]
