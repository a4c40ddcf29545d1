"""
Config store selection for the Warden moderation engine.

The storage strategy is chosen once, from settings, when the engine is
built. Components only ever see the ConfigStore interface.
"""

import logging

from warden.config import Settings
from warden.database.firebase import FirebaseConfigStore
from warden.database.store import ConfigStore, MemoryConfigStore, SqlConfigStore

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("memory", "sqlite", "firebase")


def create_config_store(settings: Settings) -> ConfigStore:
    """
    Build the config store named by settings.storage_backend.

    Args:
        settings: Engine settings.

    Returns:
        ConfigStore: A memory, SQLite or remote document store.

    Raises:
        ValueError: If the backend name is unknown or the firebase backend
            is selected without a database URL.
    """
    backend = settings.storage_backend.lower()

    if backend == "memory":
        logger.info("Using in-memory config store (state is lost on restart)")
        return MemoryConfigStore()

    if backend == "sqlite":
        logger.info(f"Using SQLite config store at {settings.database_path}")
        return SqlConfigStore(settings.database_path)

    if backend == "firebase":
        if not settings.firebase_database_url:
            raise ValueError("firebase storage backend requires FIREBASE_DATABASE_URL")
        logger.info("Using remote document config store")
        return FirebaseConfigStore(
            settings.firebase_database_url,
            timeout_seconds=settings.firebase_timeout_seconds,
        )

    raise ValueError(
        f"Unknown storage backend {settings.storage_backend!r}, "
        f"expected one of {', '.join(STORAGE_BACKENDS)}"
    )
