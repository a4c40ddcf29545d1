"""
Configuration module for the Warden moderation engine.

This module handles loading and validating configuration from environment
variables using Pydantic Settings. It supports multiple environments
(production, staging) via the BOT_ENV environment variable.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_env_file() -> str | None:
    """
    Determine which .env file to load based on BOT_ENV environment variable.

    Returns:
        str | None: Path to the environment file if it exists, None otherwise.
            - "production" or default -> ".env" (if exists)
            - "staging" -> ".env.staging" (if exists)
    """
    env = os.getenv("BOT_ENV", "production")
    env_files = {
        "production": ".env",
        "staging": ".env.staging",
    }
    env_file = env_files.get(env, ".env")

    # Pydantic will load from environment variables if no .env file
    if Path(env_file).exists():
        logger.debug(f"Loading configuration from: {env_file}")
        return env_file
    else:
        logger.debug(f"No .env file found at {env_file}, loading from environment variables")
        return None


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Attributes:
        storage_backend: Config store strategy ("memory", "sqlite" or "firebase").
        database_path: Path to SQLite database file (sqlite backend).
        firebase_database_url: Base URL of the remote document store (firebase backend).
        firebase_timeout_seconds: Total HTTP timeout for one store request.
        muted_role_name: Name of the restriction role created per scope.
        max_roles_per_command: Maximum number of roles bound to one action.
        lock_hour_utc_offset_minutes: Fixed UTC offset of the lock-hour reference
            timezone, in minutes (no daylight-saving adjustment).
        session_ttl_seconds: Lifetime of an interactive setup session.
        log_level: Root logging level applied by configure_logging().
    """

    storage_backend: str = "memory"
    database_path: str = "data/warden.db"
    firebase_database_url: str | None = None
    firebase_timeout_seconds: float = 10.0
    muted_role_name: str = "Muted (Bot)"
    max_roles_per_command: int = 7
    lock_hour_utc_offset_minutes: int = -180
    session_ttl_seconds: int = 120
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=get_env_file(),
        env_file_encoding="utf-8",
    )

    def model_post_init(self, __context):
        """Log non-sensitive configuration values after initialization."""
        logger.info("Configuration loaded successfully")
        logger.debug(f"storage_backend: {self.storage_backend}")
        logger.debug(f"database_path: {self.database_path}")
        logger.debug(f"firebase_database_url: {'set' if self.firebase_database_url else 'unset'}")
        logger.debug(f"muted_role_name: {self.muted_role_name}")
        logger.debug(f"max_roles_per_command: {self.max_roles_per_command}")
        logger.debug(f"lock_hour_utc_offset_minutes: {self.lock_hour_utc_offset_minutes}")
        logger.debug(f"session_ttl_seconds: {self.session_ttl_seconds}")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached engine settings.

    Settings are loaded once and cached for subsequent calls.

    Returns:
        Settings: Engine configuration instance.
    """
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with the engine's log format.

    Hosts call this once at startup; the engine itself never touches
    handlers.

    Args:
        level: Logging level name (e.g. "INFO", "DEBUG").
    """
    logging.basicConfig(
        format=LOG_FORMAT,
        level=getattr(logging, level.upper(), logging.INFO),
    )
