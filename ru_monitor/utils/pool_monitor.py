"""
Connection Pool Advisory

The managed SQL cluster caps how many connections a client may hold open
at once. This module reminds operators of that ceiling in the log, either
on demand or from a recurring APScheduler job, and, when given an engine,
compares the pool's checked-out count against it.

Attach once at startup via install_pool_advisory().
"""

import logging

from apscheduler.triggers.interval import IntervalTrigger

from ru_monitor.config import MonitorMode
from ru_monitor.database import get_pool_stats
from ru_monitor.utils.metrics import update_pool_checked_out

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONNECTIONS = 5


class ConnectionPoolAdvisory:
    def __init__(self, mode: MonitorMode, max_connections: int = DEFAULT_MAX_CONNECTIONS, engine=None):
        self.mode = mode
        self.max_connections = max_connections
        self.engine = engine

    @property
    def enabled(self) -> bool:
        return self.mode is MonitorMode.ENABLED

    def report(self) -> None:
        """Log the connection ceiling; no-op when monitoring is disabled."""
        if not self.enabled:
            return

        if self.engine is None:
            logger.info("Database connections: active connections should be ≤ %d", self.max_connections)
            return

        checked_out = get_pool_stats(self.engine)["checkedout"]
        update_pool_checked_out(checked_out)
        level = logging.WARNING if checked_out > self.max_connections else logging.INFO
        logger.log(
            level,
            "Database connections: %d checked out, active connections should be ≤ %d",
            checked_out,
            self.max_connections,
            extra={"checked_out": checked_out, "max_connections": self.max_connections},
        )


async def _report_pool_advisory(advisory: ConnectionPoolAdvisory) -> None:
    """Scheduled job: log the advisory, never letting a pool error kill the job."""
    try:
        advisory.report()
    except Exception as exc:
        logger.warning("pool_advisory: failed to collect pool stats: %s", exc)


def install_pool_advisory(scheduler, advisory: ConnectionPoolAdvisory, interval_seconds: int = 300) -> bool:
    """
    Register the advisory job with the application's APScheduler instance.

    Args:
        scheduler: The application's AsyncIOScheduler.
        advisory: The advisory to report from the job.
        interval_seconds: How often to log the advisory (default 5 min).

    Returns:
        True if the job was registered; False when monitoring is disabled.
    """
    if not advisory.enabled:
        return False

    scheduler.add_job(
        _report_pool_advisory,
        trigger=IntervalTrigger(seconds=interval_seconds),
        args=[advisory],
        id="pool_advisory",
        replace_existing=True,
        max_instances=1,
    )
    logger.info("pool_advisory: installed (interval=%ds)", interval_seconds)
    return True
