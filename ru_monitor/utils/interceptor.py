"""
Database Call Interceptor

Times every database call, estimates its Request Unit cost and hands the
result to the query monitor. Two entry points:

- ``DatabaseCallInterceptor.around`` / ``around_async`` wrap an explicit
  call, labelled with an ORM-style operation and model name.
- ``install_query_monitor`` attaches SQLAlchemy event listeners so every
  statement an engine executes is recorded without per-call wrapping.

A failed call is still recorded (flagged ``failed``) with the time spent
before it raised, and the original exception propagates untouched.
"""

import logging
import re
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy import event

from ru_monitor.middleware.request_context import track_db_call
from ru_monitor.utils.cost import estimate_request_units
from ru_monitor.utils.metrics import record_db_call
from ru_monitor.utils.query_monitor import SLOW_QUERY_MS, QueryEvent, QueryMonitor

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNKNOWN_MODEL = "unknown"

_START_TIME_KEY = "ru_monitor_query_start"
_TABLE_PATTERN = re.compile(r'\b(?:FROM|INTO|UPDATE)\s+((?:"[^"]+"|[\w$]+)(?:\.(?:"[^"]+"|[\w$]+))*)', re.IGNORECASE)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def statement_operation(statement: str) -> str:
    """Leading SQL verb of ``statement`` in lower case, e.g. ``select``."""
    trimmed = statement.strip() if statement else ""
    return trimmed.split(None, 1)[0].lower() if trimmed else "unknown"


def statement_table(statement: str) -> str | None:
    """First table named after FROM / INTO / UPDATE, without schema or quotes."""
    match = _TABLE_PATTERN.search(statement or "")
    if match is None:
        return None
    return match.group(1).split(".")[-1].strip('"')


class DatabaseCallInterceptor:
    """Drop-in wrapper around database calls that feeds a ``QueryMonitor``."""

    def __init__(self, monitor: QueryMonitor, estimator: Callable[..., float] = estimate_request_units):
        self.monitor = monitor
        self.estimator = estimator

    @property
    def enabled(self) -> bool:
        return self.monitor.enabled

    def observe(
        self,
        operation: str,
        model: str | None,
        duration_ms: float,
        *,
        query: str | None = None,
        failed: bool = False,
    ) -> QueryEvent | None:
        """
        Record a call that has already completed.

        ``query`` is the raw statement when one is available; otherwise the
        call is labelled ``"<operation> <model>"``.
        """
        if not self.enabled:
            return None

        estimated_rus = self.estimator(operation, model, duration_ms)
        label = query if query is not None else f"{operation} {model or UNKNOWN_MODEL}"
        slow = duration_ms > SLOW_QUERY_MS

        track_db_call(duration_ms, slow)
        record_db_call(operation, duration_ms / 1000, estimated_rus, slow=slow, failed=failed)

        return self.monitor.record(label, duration_ms, estimated_rus, failed=failed)

    def around(self, operation: str, model: str | None, call: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``call(*args, **kwargs)`` once, recording its timing."""
        if not self.enabled:
            return call(*args, **kwargs)

        start = time.perf_counter()
        try:
            result = call(*args, **kwargs)
        except Exception:
            self.observe(operation, model, _elapsed_ms(start), failed=True)
            raise

        self.observe(operation, model, _elapsed_ms(start))
        return result

    async def around_async(
        self,
        operation: str,
        model: str | None,
        call: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Await ``call(*args, **kwargs)`` once, recording its timing."""
        if not self.enabled:
            return await call(*args, **kwargs)

        start = time.perf_counter()
        try:
            result = await call(*args, **kwargs)
        except Exception:
            self.observe(operation, model, _elapsed_ms(start), failed=True)
            raise

        self.observe(operation, model, _elapsed_ms(start))
        return result


def install_query_monitor(engine, interceptor: DatabaseCallInterceptor) -> bool:
    """
    Attach event listeners that record every statement ``engine`` executes.

    Accepts a sync ``Engine`` or an ``AsyncEngine``. Does nothing when the
    monitor is disabled or the engine is already instrumented.

    Returns:
        True if listeners were attached by this call.
    """
    if not interceptor.enabled:
        logger.debug("query_monitor: disabled, listeners not installed")
        return False

    sync_engine = getattr(engine, "sync_engine", engine)
    if getattr(sync_engine, "_ru_monitor_installed", False):
        return False
    sync_engine._ru_monitor_installed = True

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info[_START_TIME_KEY] = time.perf_counter()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start = conn.info.pop(_START_TIME_KEY, None)
        if start is None:
            return
        interceptor.observe(
            statement_operation(statement),
            statement_table(statement),
            _elapsed_ms(start),
            query=statement,
        )

    @event.listens_for(sync_engine, "handle_error")
    def _handle_error(exception_context):
        conn = exception_context.connection
        if conn is None:
            return
        start = conn.info.pop(_START_TIME_KEY, None)
        if start is None:
            return
        statement = exception_context.statement or ""
        interceptor.observe(
            statement_operation(statement),
            statement_table(statement),
            _elapsed_ms(start),
            query=statement,
            failed=True,
        )

    logger.info("query_monitor: installed on %s", sync_engine.url.render_as_string(hide_password=True))
    return True
