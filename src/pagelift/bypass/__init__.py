from .orchestrator import BypassOrchestrator, Strategy, StrategyHit, create_archive_source

__all__ = ["BypassOrchestrator", "Strategy", "StrategyHit", "create_archive_source"]
