"""
Defines and manages Prometheus metrics for the extraction pipeline.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

import structlog
from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram
from prometheus_client import start_http_server

if TYPE_CHECKING:
    from pagelift.config.config import MonitoringConfig

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Defined before any metric is created so a module re-imported by the test
# suite reuses the registered collectors instead of raising.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        # Counters register under their base name; the registry also holds the _total alias.
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            # Registration lost the race, fall back to the now-existing collector.
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "fetch_requests": Counter(
            "pagelift_fetch_requests",
            "HTTP fetches issued, by identity and outcome kind",
            ["identity", "outcome"],
        ),
        "bypass_attempts": Counter(
            "pagelift_bypass_attempts",
            "Bypass strategy attempts, by strategy and outcome",
            ["strategy", "outcome"],
        ),
        "articles": Counter(
            "pagelift_articles",
            "Article load results, by final status",
            ["status"],
        ),
        "paywall_detected": Counter(
            "pagelift_paywall_detected",
            "Paywalls detected, split into hard blocks and soft text paywalls",
            ["kind"],
        ),
        "stage_duration_seconds": Histogram(
            "pagelift_stage_duration_seconds",
            "Time spent in a pipeline stage",
            ["stage"],
        ),
        "cleaner_removed_elements": Histogram(
            "pagelift_cleaner_removed_elements",
            "Elements removed by the pre-cleaner per document",
            buckets=(0, 5, 10, 25, 50, 100, 250, 500, 1000),
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def start_metrics_server(config: MonitoringConfig) -> bool:
    """Start the Prometheus exporter if a port is configured."""
    if not config.prometheus_port:
        return False
    logger.info("Starting Prometheus metrics server", port=config.prometheus_port)
    start_http_server(config.prometheus_port)
    return True
