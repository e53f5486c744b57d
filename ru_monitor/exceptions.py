"""
Custom Exception Classes for RU Monitor

The monitor itself raises nothing under normal operation; these cover the
configuration it needs at startup.
"""

from typing import Any


class RUMonitorException(Exception):
    """Base exception class for all RU monitor exceptions"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(RUMonitorException):
    """Raised when required settings are missing or invalid"""

    def __init__(self, message: str, setting: str | None = None):
        details = {"setting": setting} if setting else {}
        super().__init__(message=message, details=details)


class DatabaseConfigurationError(ConfigurationError):
    """Raised when no database URL is configured for the active environment"""

    def __init__(self, message: str = "Database URL is not configured"):
        super().__init__(message=message, setting="database_url")
