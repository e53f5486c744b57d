"""
Pytest configuration and fixtures for RU monitor tests
"""

import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

# Settings are read once at import; pin them before anything imports ru_monitor
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("POOL_ADVISORY_INTERVAL_SECONDS", "3600")

import logging  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402

from ru_monitor.config import MonitorMode, Settings  # noqa: E402
from ru_monitor.utils.interceptor import DatabaseCallInterceptor  # noqa: E402
from ru_monitor.utils.query_monitor import QueryMonitor  # noqa: E402


@pytest.fixture
def monitor() -> QueryMonitor:
    """Enabled monitor, isolated per test"""
    query_monitor = QueryMonitor(mode=MonitorMode.ENABLED)
    yield query_monitor
    query_monitor.clear()


@pytest.fixture
def disabled_monitor() -> QueryMonitor:
    return QueryMonitor(mode=MonitorMode.DISABLED)


@pytest.fixture
def interceptor(monitor: QueryMonitor) -> DatabaseCallInterceptor:
    return DatabaseCallInterceptor(monitor)


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine for exercising the SQLAlchemy hooks"""
    engine = create_engine("sqlite://")
    yield engine
    engine.dispose()


@pytest.fixture
def dev_settings() -> Settings:
    return Settings(environment="development", database_url="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def prod_settings() -> Settings:
    return Settings(environment="production", database_url_prod="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def ru_caplog(caplog):
    """caplog capturing INFO and above from the ru_monitor loggers"""
    caplog.set_level(logging.INFO, logger="ru_monitor")
    return caplog
