"""
Metrics collection for Matchday.
Wraps prometheus_client; all metric objects are module-level and label-keyed.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
UPSTREAM_REQUESTS = Counter(
    "md_upstream_requests_total",
    "Total outbound HTTP attempts",
    ["client", "status"],
)
UPSTREAM_RETRIES = Counter(
    "md_upstream_retries_total",
    "Retries scheduled by the resilient fetcher",
    ["client", "reason"],
)
CACHE_LOOKUPS = Counter(
    "md_cache_lookups_total",
    "TTL cache lookups",
    ["cache", "result"],
)
CACHE_REFRESHES = Counter(
    "md_cache_refreshes_total",
    "TTL cache refreshes actually executed",
    ["cache", "outcome"],
)
CACHE_EVICTIONS = Counter(
    "md_cache_evictions_total",
    "Entries dropped to keep a bounded cache under its size limit",
    ["cache"],
)
IMAGE_LOADS = Counter(
    "md_image_loads_total",
    "Image loads by terminal outcome",
    ["outcome"],
)
CORRELATIONS = Counter(
    "md_correlations_total",
    "Scraped candidates correlated, by strategy",
    ["strategy"],
)

# ── Histograms ──────────────────────────────────────────────────────────
UPSTREAM_LATENCY = Histogram(
    "md_upstream_latency_seconds",
    "Outbound request latency in seconds (per attempt)",
    ["client"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Gauges ──────────────────────────────────────────────────────────────
IMAGE_LOADS_IN_FLIGHT = Gauge(
    "md_image_loads_in_flight",
    "Image loads currently holding an admission slot",
)
IMAGE_LOADS_QUEUED = Gauge(
    "md_image_loads_queued",
    "Image loads waiting for an admission slot",
)



def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
