from .metrics import counter_delta, sample_value
from .pages import paragraphs, prose

__all__ = ["counter_delta", "paragraphs", "prose", "sample_value"]
