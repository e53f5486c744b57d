"""
Database Query Monitor

Keeps the most recent database calls of this process in a bounded ring
buffer and derives summary statistics from them on demand. Recording is
only active when the monitor is constructed in ``MonitorMode.ENABLED``;
the mode comes from the runtime environment and never changes while the
process runs.

One instance is created by the application factory and handed to the
interceptor, the request instrumentation and the operator routes.
"""

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from ru_monitor.config import MonitorMode
from ru_monitor.utils.sanitize import sanitize_query

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100
RECENT_QUERY_COUNT = 10

# Stats classification: strictly greater than
SLOW_QUERY_MS = 500

# Immediate warning thresholds: strictly greater than
WARN_QUERY_MS = 1000
WARN_QUERY_RUS = 100


@dataclass(frozen=True)
class QueryEvent:
    query: str
    duration_ms: float
    timestamp: datetime
    estimated_rus: float | None = None
    failed: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class QueryStats:
    total_queries: int
    avg_duration_ms: int
    slow_queries: int
    total_duration_ms: float
    recent_queries: list[QueryEvent]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_queries": self.total_queries,
            "avg_duration_ms": self.avg_duration_ms,
            "slow_queries": self.slow_queries,
            "total_duration_ms": self.total_duration_ms,
            "recent_queries": [event.to_dict() for event in self.recent_queries],
        }


def _round_half_up(value: float) -> int:
    # Builtin round() goes to even on .5, which would turn 2.5ms into 2ms
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


class QueryMonitor:
    """
    Bounded, thread-safe store of recent query events.

    Appends and clears share one lock; ``stats()`` copies the buffer under
    that lock and aggregates outside it, so a reader sees the buffer
    either before or after a concurrent ``record()``, never in between.
    """

    def __init__(self, mode: MonitorMode = MonitorMode.DISABLED, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.mode = mode
        self.capacity = capacity
        self._events: deque[QueryEvent] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.mode is MonitorMode.ENABLED

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def record(
        self,
        query: str,
        duration_ms: float,
        estimated_rus: float | None = None,
        *,
        failed: bool = False,
    ) -> QueryEvent | None:
        """
        Record one database call.

        Returns the stored event, or ``None`` when the monitor is disabled.
        A warning is logged when the call took longer than 1000ms or is
        estimated above 100 RUs.
        """
        if not self.enabled:
            return None

        sanitized = sanitize_query(query)
        duration_ms = max(0.0, float(duration_ms))

        with self._lock:
            now = datetime.now(timezone.utc)
            if self._events and now < self._events[-1].timestamp:
                # Wall clock stepped backwards; keep insertion order monotonic
                now = self._events[-1].timestamp
            event = QueryEvent(
                query=sanitized,
                duration_ms=duration_ms,
                timestamp=now,
                estimated_rus=estimated_rus,
                failed=failed,
            )
            # deque(maxlen=...) drops exactly one item from the left when full
            self._events.append(event)

        if duration_ms > WARN_QUERY_MS or (estimated_rus is not None and estimated_rus > WARN_QUERY_RUS):
            logger.warning(
                "Slow query detected: %s (%.0fms, estimated RUs: %s)",
                sanitized,
                duration_ms,
                estimated_rus if estimated_rus is not None else "unknown",
                extra={
                    "query": sanitized,
                    "duration_ms": round(duration_ms, 2),
                    "estimated_rus": estimated_rus,
                },
            )

        return event

    def stats(self) -> QueryStats | None:
        """Summarise the buffered events, or ``None`` if there are none."""
        with self._lock:
            events = list(self._events)

        if not events:
            return None

        total_duration = sum(event.duration_ms for event in events)
        return QueryStats(
            total_queries=len(events),
            avg_duration_ms=_round_half_up(total_duration / len(events)),
            slow_queries=sum(1 for event in events if event.duration_ms > SLOW_QUERY_MS),
            total_duration_ms=total_duration,
            recent_queries=events[-RECENT_QUERY_COUNT:],
        )

    def clear(self) -> None:
        """Drop every buffered event, regardless of mode."""
        with self._lock:
            self._events.clear()
        logger.debug("Query monitor buffer cleared")
