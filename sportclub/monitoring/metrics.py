"""
Prometheus Metrics

Metrics collection for the request gates.
"""

from prometheus_client import Counter, Histogram, Info

# Application info
app_info = Info("sportclub_app", "Sports-club API application information")

# Idempotency metrics
idempotency_hits_counter = Counter(
    "idempotency_hits_total",
    "Idempotency replays (duplicates prevented)",
    ["endpoint"],
)

idempotency_misses_counter = Counter(
    "idempotency_misses_total",
    "Idempotency misses (new executions)",
    ["endpoint"],
)

idempotency_conflicts_counter = Counter(
    "idempotency_conflicts_total",
    "Duplicate submissions rejected while the original was in progress",
    ["endpoint"],
)

idempotency_failures_counter = Counter(
    "idempotency_failures_total",
    "Wrapped operations that raised (record removed for retry)",
    ["endpoint"],
)

idempotency_purged_counter = Counter(
    "idempotency_records_purged_total",
    "Expired idempotency records deleted by the purge job",
)

# Access metrics
access_decisions_counter = Counter(
    "access_decisions_total",
    "Access gate decisions",
    ["outcome", "membership_status"],
)

rate_limit_rejections_counter = Counter(
    "rate_limit_rejections_total",
    "Requests rejected by the rate limiter",
)

# API metrics
api_requests_total = Counter(
    "api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status_code"],
)

api_request_duration = Histogram(
    "api_request_duration_seconds",
    "API request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


def initialize_metrics(app_name: str, version: str) -> None:
    """Initialize application metrics."""
    app_info.info({
        "app_name": app_name,
        "version": version,
    })
