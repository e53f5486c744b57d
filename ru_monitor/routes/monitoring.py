"""
Monitoring Routes

Health, Prometheus metrics and, outside production, the operator view of
the query monitor's buffer.
"""

import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ru_monitor.database import get_db, get_pool_stats

router = APIRouter(tags=["Monitoring"])

# Only mounted when the query monitor is enabled
query_router = APIRouter(prefix="/monitoring", tags=["Monitoring"])

APP_START_TIME = time.time()


class HealthStatus(BaseModel):
    """Health check response model."""

    status: str
    timestamp: str
    version: str
    monitor_mode: str
    uptime_seconds: float


class ReadinessStatus(BaseModel):
    """Readiness check response model."""

    status: str
    timestamp: str
    checks: dict[str, dict[str, Any]]


@router.get("/health", response_model=HealthStatus)
async def health_check(request: Request) -> HealthStatus:
    """Liveness probe; touches no external service."""
    settings = request.app.state.settings
    return HealthStatus(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=settings.app_version,
        monitor_mode=request.app.state.query_monitor.mode.value,
        uptime_seconds=round(time.time() - APP_START_TIME, 2),
    )


@router.get("/ready", response_model=ReadinessStatus)
async def readiness_check(request: Request, db: AsyncSession = Depends(get_db)) -> ReadinessStatus:
    """Readiness probe: database round trip plus pool usage against the ceiling."""
    checks: dict[str, dict[str, Any]] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy"}
    except Exception as exc:
        checks["database"] = {"status": "unhealthy", "error": str(exc)}

    pool = get_pool_stats(request.app.state.engine)
    ceiling = request.app.state.settings.max_db_connections
    checks["connection_pool"] = {
        "status": "healthy" if pool["checkedout"] <= ceiling else "degraded",
        "checked_out": pool["checkedout"],
        "max_connections": ceiling,
    }

    all_healthy = all(check["status"] == "healthy" for check in checks.values())
    return ReadinessStatus(
        status="ready" if all_healthy else "not_ready",
        timestamp=datetime.now(timezone.utc).isoformat(),
        checks=checks,
    )


@router.get("/metrics")
async def prometheus_metrics() -> Response:
    """Prometheus metrics in text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@query_router.get("/queries")
async def query_stats(request: Request) -> dict[str, Any] | None:
    """Current query-monitor statistics; ``null`` until a query is recorded."""
    stats = request.app.state.query_monitor.stats()
    return stats.to_dict() if stats else None


@query_router.delete("/queries", status_code=status.HTTP_204_NO_CONTENT)
async def clear_query_stats(request: Request) -> Response:
    """Empty the query-monitor buffer."""
    request.app.state.query_monitor.clear()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
