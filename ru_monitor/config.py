from dataclasses import dataclass
from enum import Enum
import logging
import re

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

from ru_monitor.exceptions import DatabaseConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

# Environments in which query monitoring is switched on. Anything else,
# including typos and unset values, keeps the monitor disabled.
MONITORED_ENVIRONMENTS = frozenset({"development", "dev", "local"})


class MonitorMode(str, Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"


def monitor_mode_for(environment: str | None) -> MonitorMode:
    """Map a runtime environment name onto a monitor mode."""
    if environment and environment.strip().lower() in MONITORED_ENVIRONMENTS:
        return MonitorMode.ENABLED
    return MonitorMode.DISABLED


class Settings(BaseSettings):
    # Application settings
    app_name: str = "RU Monitor"
    app_version: str = "1.0.0"
    environment: str | None = None

    # Database settings
    database_url: str | None = None
    database_url_dev: str | None = None
    database_url_prod: str | None = None

    # The managed cluster caps concurrent connections per client
    max_db_connections: int = 5
    pool_timeout_seconds: int = 20
    pool_recycle_seconds: int = 300

    # Monitor settings
    query_monitor_capacity: int = 100
    pool_advisory_interval_seconds: int = 300

    # Logging settings
    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def monitor_mode(self) -> MonitorMode:
        return monitor_mode_for(self.environment)

    @property
    def is_production(self) -> bool:
        return (self.environment or "").strip().lower() == "production"


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    environment: str


def get_database_config(settings: Settings) -> DatabaseConfig:
    """
    Pick the database URL for the active environment.

    Production deployments read ``DATABASE_URL_PROD``; every other
    environment (preview, staging, local) uses ``DATABASE_URL``, falling back
    to ``DATABASE_URL_DEV``.

    Raises:
        DatabaseConfigurationError: if the URL for the environment is unset.
    """
    if settings.is_production:
        if not settings.database_url_prod:
            raise DatabaseConfigurationError(
                "DATABASE_URL_PROD environment variable is required for production"
            )
        return DatabaseConfig(url=settings.database_url_prod, environment="production")

    url = settings.database_url or settings.database_url_dev
    if not url:
        raise DatabaseConfigurationError(
            "DATABASE_URL or DATABASE_URL_DEV environment variable is required for development"
        )
    return DatabaseConfig(url=url, environment="development")


def redact_database_url(url: str) -> str:
    """Replace the credentials part of a database URL with ``***:***``."""
    return re.sub(r"://[^@/]+@", "://***:***@", url, count=1)


def database_host(url: str) -> str:
    redacted = redact_database_url(url)
    if "@" in redacted:
        host = redacted.split("@", 1)[1].split("/", 1)[0]
    else:
        host = redacted.split("://", 1)[-1].split("/", 1)[0]
    return host or "unknown"


def log_database_connection(settings: Settings) -> None:
    """Log which database the process talks to, without credentials."""
    if settings.monitor_mode is not MonitorMode.ENABLED:
        return

    config = get_database_config(settings)
    logger.info("Database environment: %s", config.environment)
    logger.info("Database host: %s", database_host(config.url))


settings = Settings()
