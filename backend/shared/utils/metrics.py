"""
Lightweight metrics collection for Sharpline.
Metric definitions on prometheus_client plus the exposition server.
"""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Info, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
SOURCE_FETCHES = Counter(
    "sl_source_fetches_total",
    "Source fetches by outcome (present, absent, timeout, error, circuit_open)",
    ["source", "outcome"],
)
SOURCE_HTTP_REQUESTS = Counter(
    "sl_source_http_requests_total",
    "Outbound HTTP requests issued by data sources",
    ["source", "status"],
)
REASONING_REQUESTS = Counter(
    "sl_reasoning_requests_total",
    "Reasoning service calls by outcome",
    ["outcome"],
)
REASONING_CACHE = Counter(
    "sl_reasoning_cache_total",
    "Reasoning response cache lookups",
    ["result"],
)
REASONING_THROTTLE_WAITS = Counter(
    "sl_reasoning_throttle_waits_total",
    "Times a reasoning call blocked on the limiter",
    ["reason"],
)
CYCLES = Counter(
    "sl_cycles_total",
    "Pipeline cycles by outcome",
    ["batch", "outcome"],
)
FACTOR_ERRORS = Counter(
    "sl_factor_errors_total",
    "Factor computations that raised and were marked unavailable",
    ["factor"],
)

# ── Histograms ──────────────────────────────────────────────────────────
SOURCE_LATENCY = Histogram(
    "sl_source_latency_seconds",
    "Source fetch latency in seconds",
    ["source"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
REASONING_LATENCY = Histogram(
    "sl_reasoning_latency_seconds",
    "Reasoning network call latency in seconds",
    buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0),
)
CYCLE_DURATION = Histogram(
    "sl_cycle_duration_seconds",
    "Wall time of a full pipeline cycle",
    ["batch"],
    buckets=(1, 2.5, 5, 10, 30, 60, 120, 300),
)
ACTIVE_FACTORS = Histogram(
    "sl_active_factors",
    "Number of data-backed factors per evaluated event",
    buckets=(0, 2, 4, 6, 8, 10, 12),
)

# ── Gauges ──────────────────────────────────────────────────────────────
EVENTS_TRACKED = Gauge(
    "sl_events_tracked",
    "Events in the latest stored snapshot",
    ["batch"],
)
REASONING_COOLDOWN_ACTIVE = Gauge(
    "sl_reasoning_cooldown_active",
    "1 while the reasoning client is cooling down after a quota response",
)
CYCLES_IN_FLIGHT = Gauge(
    "sl_cycles_in_flight",
    "Pipeline cycles currently running",
)

# ── Info ────────────────────────────────────────────────────────────────
SERVICE_INFO = Info("sl_service", "Service build information")


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
