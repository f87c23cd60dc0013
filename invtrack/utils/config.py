"""
Configuration management for the inventory tracker.

This module handles:
- Database URL configuration
- Environment-specific configuration (development vs. production)
- SQL echo for debugging
- HTTP API bind address and log level
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
)

ENV_VAR_ENVIRONMENT = "INVTRACK_ENV"
ENV_VAR_DATABASE_URL = "INVTRACK_DATABASE_URL"
ENV_VAR_ECHO_SQL = "INVTRACK_ECHO_SQL"
ENV_VAR_HOST = "INVTRACK_HOST"
ENV_VAR_PORT = "INVTRACK_PORT"
ENV_VAR_LOG_LEVEL = "INVTRACK_LOG_LEVEL"


class Config:
    """
    Application configuration manager.

    Handles database location and environment settings. A database URL in
    INVTRACK_DATABASE_URL (e.g. a PostgreSQL DSN) always wins over the
    file-based SQLite default.
    """

    def __init__(self, environment: str = "production"):
        """
        Initialize configuration.

        Args:
            environment: Environment mode - 'production' or 'development'
        """
        self.environment = environment
        self._app_name = APP_NAME
        self._app_version = APP_VERSION
        self._database_version = DATABASE_VERSION

        if environment == "development":
            self._base_dir = self._get_project_data_dir()
        else:
            self._base_dir = self._get_user_data_dir()

        self._database_path = self._base_dir / DATABASE_FILENAME
        self._database_url_override = os.environ.get(ENV_VAR_DATABASE_URL)
        self._echo_sql = os.environ.get(ENV_VAR_ECHO_SQL, "false").lower() == "true"
        self._api_host = os.environ.get(ENV_VAR_HOST, "127.0.0.1")
        self._api_port = int(os.environ.get(ENV_VAR_PORT, "8000"))
        default_level = "DEBUG" if environment == "development" else "INFO"
        self._log_level = os.environ.get(ENV_VAR_LOG_LEVEL, default_level).upper()

    def _get_project_data_dir(self) -> Path:
        """Project data/ directory used in development."""
        project_root = Path(__file__).parent.parent.parent
        return project_root / "data"

    def _get_user_data_dir(self) -> Path:
        """Per-user data directory used in production."""
        return Path.home() / ".invtrack"

    def ensure_directories(self) -> None:
        """Create the SQLite data directory if a file database is used."""
        if self._database_url_override is None:
            self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def app_name(self) -> str:
        """Application name."""
        return self._app_name

    @property
    def app_version(self) -> str:
        """Application version."""
        return self._app_version

    @property
    def database_version(self) -> str:
        """Database schema version."""
        return self._database_version

    @property
    def database_path(self) -> Path:
        """Full path to the SQLite database file (unused when a URL override is set)."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """
        SQLAlchemy database URL.

        Returns:
            INVTRACK_DATABASE_URL if set, otherwise a SQLite file URL
        """
        if self._database_url_override:
            return self._database_url_override
        db_path_str = str(self._database_path).replace("\\", "/")
        return f"sqlite:///{db_path_str}"

    @property
    def echo_sql(self) -> bool:
        """Whether the engine logs every SQL statement."""
        return self._echo_sql

    @property
    def api_host(self) -> str:
        """Interface the HTTP API binds to."""
        return self._api_host

    @property
    def api_port(self) -> int:
        """Port the HTTP API listens on."""
        return self._api_port

    @property
    def log_level(self) -> str:
        """Root log level name (INVTRACK_LOG_LEVEL, DEBUG in development)."""
        return self._log_level

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def __repr__(self) -> str:
        """String representation of config."""
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Get the global configuration instance.

    Once created, the singleton's environment cannot be changed by passing
    a different environment argument.

    Args:
        environment: Optional environment for initial creation. If None, uses
                    INVTRACK_ENV or defaults to production. Ignored if
                    singleton already exists.

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_VAR_ENVIRONMENT, "production")
        _config_instance = Config(environment)
    elif environment is not None and environment != _config_instance.environment:
        logger = logging.getLogger(__name__)
        logger.warning(
            f"get_config() called with environment='{environment}' but singleton "
            f"already exists with environment='{_config_instance.environment}'. "
            f"Returning existing singleton."
        )

    return _config_instance


def reset_config() -> None:
    """
    Reset the global configuration instance.

    Useful for testing.
    """
    global _config_instance
    _config_instance = None
