"""
Prometheus Metrics Module

Counters and histograms for intercepted database calls and slow API
routes. Exposed at /metrics for Prometheus scraping.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# =============================================================================
# Application Info
# =============================================================================

APP_INFO = Info("ru_monitor_app", "RU monitor application information")


def set_app_info(version: str, environment: str, monitor_mode: str) -> None:
    """Set application info labels."""
    APP_INFO.info({"version": version, "environment": environment, "monitor_mode": monitor_mode})


# =============================================================================
# Database Metrics
# =============================================================================

DB_QUERIES_TOTAL = Counter(
    "ru_db_queries_total",
    "Total database calls seen by the interceptor",
    ["operation"],
)

DB_QUERY_DURATION_SECONDS = Histogram(
    "ru_db_query_duration_seconds",
    "Database call duration in seconds",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

DB_SLOW_QUERIES_TOTAL = Counter(
    "ru_db_slow_queries_total",
    "Database calls slower than the slow-query threshold",
    ["operation"],
)

DB_FAILED_QUERIES_TOTAL = Counter(
    "ru_db_failed_queries_total",
    "Database calls that raised",
    ["operation"],
)

DB_ESTIMATED_RUS_TOTAL = Counter(
    "ru_db_estimated_request_units_total",
    "Sum of estimated Request Units across database calls",
    ["operation"],
)

DB_POOL_CHECKED_OUT = Gauge(
    "ru_db_pool_checked_out",
    "Number of DB connections currently checked out from the pool",
)

# =============================================================================
# HTTP Metrics
# =============================================================================

SLOW_ROUTES_TOTAL = Counter(
    "ru_http_slow_routes_total",
    "API route completions reported by request instrumentation",
    ["route"],
)


def record_db_call(
    operation: str,
    duration_seconds: float,
    estimated_rus: float,
    slow: bool,
    failed: bool = False,
) -> None:
    """Record one intercepted database call."""
    operation = operation.lower()
    DB_QUERIES_TOTAL.labels(operation=operation).inc()
    DB_QUERY_DURATION_SECONDS.labels(operation=operation).observe(duration_seconds)
    DB_ESTIMATED_RUS_TOTAL.labels(operation=operation).inc(estimated_rus)
    if slow:
        DB_SLOW_QUERIES_TOTAL.labels(operation=operation).inc()
    if failed:
        DB_FAILED_QUERIES_TOTAL.labels(operation=operation).inc()


def record_slow_route(route: str) -> None:
    SLOW_ROUTES_TOTAL.labels(route=route).inc()


def update_pool_checked_out(checked_out: int) -> None:
    DB_POOL_CHECKED_OUT.set(checked_out)
