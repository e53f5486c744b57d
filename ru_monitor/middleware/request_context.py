"""
Request-scoped database counters.

The query monitor's buffer is shared by every request in the process, so
its slow-query count can include calls made by unrelated concurrent
requests. A fresh ``RequestDBCounters`` is bound at the start of each
request and only sees the calls made while handling that request.

The context variable holds a mutable object rather than plain numbers:
Starlette runs the endpoint in a child task (and sync endpoints in a
worker thread), and only in-place updates are visible back in the
middleware once the endpoint returns.
"""

import threading
from contextvars import ContextVar, Token
from dataclasses import dataclass, field


@dataclass
class RequestDBCounters:
    queries: int = 0
    slow_queries: int = 0
    total_ms: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add(self, duration_ms: float, slow: bool) -> None:
        with self._lock:
            self.queries += 1
            self.total_ms += duration_ms
            if slow:
                self.slow_queries += 1


request_db_counters_var: ContextVar[RequestDBCounters | None] = ContextVar("request_db_counters", default=None)


def bind_db_counters() -> Token:
    """Attach fresh counters to the current context; reset with the returned token."""
    return request_db_counters_var.set(RequestDBCounters())


def unbind_db_counters(token: Token) -> None:
    request_db_counters_var.reset(token)


def current_db_counters() -> RequestDBCounters | None:
    return request_db_counters_var.get()


def track_db_call(duration_ms: float, slow: bool) -> None:
    """Count a database call against the current request, if there is one."""
    counters = request_db_counters_var.get()
    if counters is not None:
        counters.add(duration_ms, slow)
