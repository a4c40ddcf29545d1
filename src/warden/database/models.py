"""
Persisted models for the Warden moderation engine.

Scope-level records (role bindings, warn counters, lock-hour schedules) are
pydantic models serialized with camelCase aliases into the config store.
ConfigEntry is the SQLModel table backing the SQLite store strategy.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Field as SQLField
from sqlmodel import SQLModel


def now_ms() -> int:
    """Current UTC time as epoch milliseconds."""
    return int(datetime.now(UTC).timestamp() * 1000)


class StoredRecord(BaseModel):
    """Base for records stored as JSON documents under a scope key."""

    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class CommandBinding(StoredRecord):
    """
    Roles authorized to invoke one action within a scope.

    Stored as ``{roles: {roleId: true}, configuredBy, configuredAt}``; an empty
    role map means the action is not configured.

    Attributes:
        roles: Bound role IDs mapped to True.
        configured_by: Actor ID of the last editor.
        configured_at: Epoch milliseconds of the last edit.
    """

    roles: dict[str, bool] = Field(default_factory=dict)
    configured_by: str | None = Field(default=None, alias="configuredBy")
    configured_at: int | None = Field(default=None, alias="configuredAt")

    @field_validator("roles", mode="before")
    @classmethod
    def _roles_or_empty(cls, value):
        # Remote stores drop empty objects and hand back null
        return value or {}

    @property
    def role_ids(self) -> set[str]:
        return {role_id for role_id, bound in self.roles.items() if bound}

    @property
    def is_configured(self) -> bool:
        return bool(self.role_ids)


class WarnRecord(StoredRecord):
    """
    Infraction counter for one subject within a scope.

    Attributes:
        count: Number of warnings issued since the last clear.
        last_reason: Reason given with the most recent warning.
        last_issued_by: Actor ID of the most recent issuer.
        last_issued_at: Epoch milliseconds of the most recent warning.
    """

    count: int = Field(default=0, ge=0)
    last_reason: str | None = Field(default=None, alias="lastReason")
    last_issued_by: str | None = Field(default=None, alias="lastIssuedBy")
    last_issued_at: int | None = Field(default=None, alias="lastIssuedAt")


class ClockTime(StoredRecord):
    hour: int = Field(ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


class LockHourSchedule(StoredRecord):
    """
    Daily lock window for a scope, in the fixed reference timezone.

    Attributes:
        enabled: Whether the window is armed.
        start: Time of day at which lockdown is engaged.
        end: Time of day at which lockdown is lifted.
        configured_by: Actor ID of the last editor.
        configured_at: Epoch milliseconds of the last edit.
    """

    enabled: bool = True
    start: ClockTime
    end: ClockTime
    configured_by: str | None = Field(default=None, alias="configuredBy")
    configured_at: int | None = Field(default=None, alias="configuredAt")


class ConfigEntry(SQLModel, table=True):
    """
    One key/value document of the SQLite config store.

    Attributes:
        key: Hierarchical scope key (primary key).
        value: JSON-encoded document.
        updated_at: Timestamp of the last write.
    """

    __tablename__ = "config_entries"

    key: str = SQLField(primary_key=True)
    value: str
    updated_at: datetime = SQLField(default_factory=lambda: datetime.now(UTC))
