"""
Request Instrumentation

Logs one diagnostic line at the end of a request when the request itself
was slow, or when the query monitor's buffer holds slow database calls.

The buffer is process-wide, so its slow-query count is a snapshot of all
recent calls rather than just this request's. The line also carries the
request-scoped counters from ``request_context`` so the two can be told
apart.
"""

import logging
import time
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ru_monitor.middleware.request_context import bind_db_counters, current_db_counters, unbind_db_counters
from ru_monitor.utils.metrics import record_slow_route
from ru_monitor.utils.query_monitor import QueryMonitor

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 2000
UNMATCHED_ROUTE = "unmatched"


class RequestInstrumentation:
    def __init__(self, monitor: QueryMonitor, clock: Callable[[], float] = time.perf_counter):
        self.monitor = monitor
        self.clock = clock

    def report(self, route: str, started_at: float) -> bool:
        """
        Log the route if it ran longer than 2000ms or slow queries are buffered.

        Args:
            route: Opaque route label, e.g. ``"GET /api/properties"``.
            started_at: Value of ``clock()`` taken when the request began.

        Returns:
            True if a line was logged.
        """
        if not self.monitor.enabled:
            return False

        elapsed_ms = (self.clock() - started_at) * 1000
        stats = self.monitor.stats()
        slow_queries = stats.slow_queries if stats else 0

        if elapsed_ms <= SLOW_REQUEST_MS and slow_queries == 0:
            return False

        counters = current_db_counters()
        extra = {
            "route": route,
            "duration_ms": round(elapsed_ms, 2),
            "db_queries": stats.total_queries if stats else 0,
            "slow_queries": slow_queries,
        }
        if counters is not None:
            extra["request_db_queries"] = counters.queries
            extra["request_slow_queries"] = counters.slow_queries
            extra["request_db_ms"] = round(counters.total_ms, 2)

        logger.info(
            "API Route: %s (%.0fms, db queries: %d, slow queries: %d)",
            route,
            elapsed_ms,
            extra["db_queries"],
            slow_queries,
            extra=extra,
        )
        record_slow_route(route)
        return True


class RequestInstrumentationMiddleware(BaseHTTPMiddleware):
    """
    Times each request and hands it to ``RequestInstrumentation.report``.

    Also binds fresh request-scoped DB counters for the interceptor to
    update while the request is handled.
    """

    EXCLUDED_PATHS = {"/health", "/metrics", "/favicon.ico"}

    def __init__(self, app: ASGIApp, instrumentation: RequestInstrumentation):
        super().__init__(app)
        self.instrumentation = instrumentation

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS or not self.instrumentation.monitor.enabled:
            return await call_next(request)

        started_at = self.instrumentation.clock()
        token = bind_db_counters()
        try:
            return await call_next(request)
        finally:
            self.instrumentation.report(f"{request.method} {self._route_label(request)}", started_at)
            unbind_db_counters(token)

    @staticmethod
    def _route_label(request: Request) -> str:
        """
        Path template of the route that handled the request.

        Requests that matched no route share the ``unmatched`` label.

        Examples:
            /api/properties/123 -> /api/properties/{property_id}
        """
        route = request.scope.get("route")
        return getattr(route, "path", None) or UNMATCHED_ROUTE
