import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from ru_monitor.config import Settings, log_database_connection, settings as default_settings
from ru_monitor.database import create_db_engine, create_session_factory
from ru_monitor.middleware.instrumentation import RequestInstrumentation, RequestInstrumentationMiddleware
from ru_monitor.middleware.logging import RequestIdMiddleware, setup_structured_logging
from ru_monitor.routes import monitoring
from ru_monitor.scheduler import create_scheduler, shutdown_scheduler
from ru_monitor.utils.interceptor import DatabaseCallInterceptor, install_query_monitor
from ru_monitor.utils.metrics import set_app_info
from ru_monitor.utils.pool_monitor import ConnectionPoolAdvisory, install_pool_advisory
from ru_monitor.utils.query_monitor import QueryMonitor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the advisory scheduler; dispose of the engine on the way out."""
    logger.info("Starting up the application...")
    log_database_connection(app.state.settings)

    if install_pool_advisory(
        app.state.scheduler,
        app.state.pool_advisory,
        interval_seconds=app.state.settings.pool_advisory_interval_seconds,
    ):
        app.state.scheduler.start()
        app.state.pool_advisory.report()

    yield

    logger.info("Shutting down the application...")
    shutdown_scheduler(app.state.scheduler)
    await app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application and its monitoring components.

    The monitor mode is fixed here from ``settings.environment``; every
    component receives the same ``QueryMonitor`` instance.
    """
    settings = settings or default_settings
    mode = settings.monitor_mode

    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

    engine = create_db_engine(settings)
    query_monitor = QueryMonitor(mode=mode, capacity=settings.query_monitor_capacity)
    interceptor = DatabaseCallInterceptor(query_monitor)
    install_query_monitor(engine, interceptor)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.query_monitor = query_monitor
    app.state.interceptor = interceptor
    app.state.instrumentation = RequestInstrumentation(query_monitor)
    app.state.pool_advisory = ConnectionPoolAdvisory(mode, max_connections=settings.max_db_connections, engine=engine)
    app.state.scheduler = create_scheduler()

    # Added last runs first: the request ID is bound before instrumentation logs
    app.add_middleware(RequestInstrumentationMiddleware, instrumentation=app.state.instrumentation)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(monitoring.router)
    if query_monitor.enabled:
        app.include_router(monitoring.query_router)

    environment = settings.environment or "unset"
    set_app_info(version=settings.app_version, environment=environment, monitor_mode=mode.value)
    logger.info(f"Running in {environment} mode (query monitor {mode.value})")

    return app


setup_structured_logging(log_level=default_settings.log_level, json_format=default_settings.log_json)

app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000)
