"""
Config store strategies for the Warden moderation engine.

All engine state that outlives the process lives in a ConfigStore: a flat
key/value space of JSON documents addressed by hierarchical scope keys.
Reads through get() degrade to a default when the backend is unreachable;
writes and deletes always surface BackendUnavailable so callers can report
them.
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from warden.database.models import ConfigEntry
from warden.errors import BackendUnavailable

logger = logging.getLogger(__name__)


def scope_prefix(scope_id: str) -> str:
    return f"scope/{scope_id}"


def command_key(scope_id: str, action: str) -> str:
    return f"{scope_prefix(scope_id)}/commands/{action}"


def warns_key(scope_id: str, user_id: str) -> str:
    return f"{scope_prefix(scope_id)}/warns/{user_id}"


def lockdown_key(scope_id: str) -> str:
    return f"{scope_prefix(scope_id)}/lockdown"


def lockhour_key(scope_id: str) -> str:
    return f"{scope_prefix(scope_id)}/lockhour"


class ConfigStore(ABC):
    """
    Abstract key/value persistence shared by every engine component.

    Subclasses implement load/set/delete and raise BackendUnavailable on
    transport failure; get() is provided here.
    """

    @abstractmethod
    async def load(self, key: str) -> Any | None:
        """
        Read a document, distinguishing "absent" from "unreachable".

        Returns:
            The stored JSON value, or None if the key is absent.

        Raises:
            BackendUnavailable: If the backend could not be read.
        """

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable document, replacing any previous one."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a document; deleting an absent key is not an error."""

    async def get(self, key: str, default: Any = None) -> Any:
        """
        Read a document, falling back to a default on absence or failure.

        Args:
            key: Scope key to read.
            default: Value returned when the key is absent or unreadable.

        Returns:
            The stored value or the default.
        """
        try:
            value = await self.load(key)
        except BackendUnavailable as e:
            logger.warning(f"Config read for {key} failed, using default: {e}")
            return default
        return default if value is None else value

    async def close(self) -> None:
        """Release backend resources."""


class MemoryConfigStore(ConfigStore):
    """Process-local store; values are deep-copied in and out."""

    def __init__(self):
        self._data: dict[str, Any] = {}

    async def load(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class SqlConfigStore(ConfigStore):
    """
    SQLite-backed store using a single SQLModel key/value table.

    Documents are stored as JSON text in ConfigEntry rows.
    """

    def __init__(self, database_path: str):
        """
        Initialize database connection and create tables.

        Args:
            database_path: Path to SQLite database file.
                Parent directories are created if they don't exist.
        """
        path = Path(database_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        self._engine = create_engine(f"sqlite:///{database_path}")
        SQLModel.metadata.create_all(self._engine)

    async def load(self, key: str) -> Any | None:
        try:
            with Session(self._engine) as session:
                record = session.get(ConfigEntry, key)
                if record is None:
                    return None
                return json.loads(record.value)
        except SQLAlchemyError as e:
            raise BackendUnavailable(f"Could not read {key}: {e}") from e

    async def set(self, key: str, value: Any) -> None:
        try:
            with Session(self._engine) as session:
                record = session.get(ConfigEntry, key)
                if record is None:
                    record = ConfigEntry(key=key, value=json.dumps(value))
                else:
                    record.value = json.dumps(value)
                    record.updated_at = datetime.now(UTC)
                session.add(record)
                session.commit()
        except SQLAlchemyError as e:
            raise BackendUnavailable(f"Could not write {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            with Session(self._engine) as session:
                record = session.get(ConfigEntry, key)
                if record is not None:
                    session.delete(record)
                    session.commit()
        except SQLAlchemyError as e:
            raise BackendUnavailable(f"Could not delete {key}: {e}") from e

    async def close(self) -> None:
        """Dispose of the engine to close all connections."""
        self._engine.dispose()
