from .content_scorer import ContentScorer, ScoredArticle
from .readability_parser import ReadabilityParser
from .readerable import is_probably_readerable

__all__ = ["ContentScorer", "ReadabilityParser", "ScoredArticle", "is_probably_readerable"]
