from .config import (
    STRATEGY_IDS,
    ArchiveConfig,
    BypassConfig,
    CleanerConfig,
    Config,
    FetcherConfig,
    MarkdownConfig,
    MonitoringConfig,
    ReadabilityConfig,
    settings,
)

__all__ = [
    "STRATEGY_IDS",
    "ArchiveConfig",
    "BypassConfig",
    "CleanerConfig",
    "Config",
    "FetcherConfig",
    "MarkdownConfig",
    "MonitoringConfig",
    "ReadabilityConfig",
    "settings",
]
