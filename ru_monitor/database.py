from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from ru_monitor.config import Settings, get_database_config
import logging

logger = logging.getLogger(__name__)


def create_db_engine(settings: Settings):
    """
    Create the async engine for the active environment.

    The pool never grows past ``settings.max_db_connections``: the managed
    cluster rejects clients that open more connections than that.
    SQLite URLs get the dialect's default pool, which takes no sizing.
    """
    config = get_database_config(settings)

    if config.url.startswith("sqlite"):
        return create_async_engine(config.url)

    return create_async_engine(
        config.url,
        pool_size=settings.max_db_connections,
        max_overflow=0,
        pool_timeout=settings.pool_timeout_seconds,
        pool_recycle=settings.pool_recycle_seconds,
        pool_pre_ping=True,
    )


def create_session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_pool_stats(engine) -> dict[str, int]:
    """
    Snapshot of the engine's connection pool.

    Pools without counters (e.g. SQLite's StaticPool) report zeros.
    """
    pool = getattr(engine, "sync_engine", engine).pool

    def _read(name: str) -> int:
        reader = getattr(pool, name, None)
        if reader is None:
            return 0
        try:
            return int(reader())
        except (TypeError, NotImplementedError):
            return 0

    return {
        "size": _read("size"),
        "checkedout": _read("checkedout"),
        "checkedin": _read("checkedin"),
        "overflow": _read("overflow"),
    }


async def get_db(request: Request):
    """FastAPI dependency yielding a session from the app's session factory."""
    async with request.app.state.session_factory() as db:
        try:
            yield db
        except Exception as e:
            logger.error(f"Database session error: {e}")
            raise
