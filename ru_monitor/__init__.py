"""
RU Monitor: database-call observability for the listings backend.

Public API:
    QueryMonitor             bounded buffer of recent database calls
    DatabaseCallInterceptor  times calls and feeds the monitor
    RequestInstrumentation   end-of-request diagnostic line
    ConnectionPoolAdvisory   connection-ceiling reminder
    sanitize_query           literal-free query text
    estimate_request_units   Request Unit cost heuristic
"""

from .config import MonitorMode, monitor_mode_for
from .middleware.instrumentation import RequestInstrumentation
from .utils.cost import estimate_request_units
from .utils.interceptor import DatabaseCallInterceptor, install_query_monitor
from .utils.pool_monitor import ConnectionPoolAdvisory
from .utils.query_monitor import QueryEvent, QueryMonitor, QueryStats
from .utils.sanitize import sanitize_query

__all__ = [
    "ConnectionPoolAdvisory",
    "DatabaseCallInterceptor",
    "MonitorMode",
    "QueryEvent",
    "QueryMonitor",
    "QueryStats",
    "RequestInstrumentation",
    "estimate_request_units",
    "install_query_monitor",
    "monitor_mode_for",
    "sanitize_query",
]
