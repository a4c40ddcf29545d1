"""
Host platform types and gateway protocol.

The engine never talks to a chat platform directly. The host bot wraps its
client library in an object satisfying PlatformGateway and passes plain
Actor/Member/Channel values in; everything scope-specific is addressed by
opaque string IDs.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol


class Capability(StrEnum):
    """Platform-granted permission bits the engine cares about."""

    ADMINISTRATOR = "administrator"
    BAN_MEMBERS = "ban_members"
    MANAGE_ROLES = "manage_roles"
    MANAGE_CHANNELS = "manage_channels"
    MANAGE_MESSAGES = "manage_messages"
    MANAGE_GUILD = "manage_guild"


class ChannelKind(StrEnum):
    TEXT = "text"
    ANNOUNCEMENT = "announcement"
    VOICE = "voice"
    CATEGORY = "category"
    FORUM = "forum"
    STAGE = "stage"
    THREAD = "thread"


class Override(StrEnum):
    """Tri-state broadcast override of the default-everyone principal."""

    ALLOW = "allow"
    DENY = "deny"
    INHERITED = "inherited"


@dataclass(frozen=True)
class Member:
    """
    A scope member as seen at one point in time.

    Attributes:
        id: Platform user ID.
        role_ids: IDs of the roles the member currently holds.
        rank: Position of the member's highest role (higher outranks lower).
    """

    id: str
    role_ids: frozenset[str] = field(default_factory=frozenset)
    rank: int = 0

    def has_role(self, role_id: str) -> bool:
        return role_id in self.role_ids


@dataclass(frozen=True)
class Actor(Member):
    """A member invoking an action, with their platform capabilities."""

    capabilities: frozenset[Capability] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return Capability.ADMINISTRATOR in self.capabilities

    def has_capability(self, capability: Capability) -> bool:
        return self.is_admin or capability in self.capabilities


@dataclass(frozen=True)
class Channel:
    id: str
    kind: ChannelKind = ChannelKind.TEXT
    name: str = ""


# Returns >0 when the first member outranks the second, 0 on a tie.
RankComparator = Callable[[Member, Member], int]


def compare_by_rank(first: Member, second: Member) -> int:
    """Default comparator: order members by their highest role position."""
    return first.rank - second.rank


class PlatformGateway(Protocol):
    """
    Operations the engine needs from the host chat platform.

    Implementations may raise any exception on failure; the engine converts
    those into ActionFailed (or logs them where the operation is
    best-effort). fetch_member and get_channel return None when the target
    is gone.
    """

    async def fetch_member(self, scope_id: str, user_id: str) -> Member | None: ...

    async def find_role(self, scope_id: str, name: str) -> str | None: ...

    async def create_role(self, scope_id: str, name: str) -> str: ...

    async def add_role(self, scope_id: str, user_id: str, role_id: str, reason: str) -> None: ...

    async def remove_role(self, scope_id: str, user_id: str, role_id: str, reason: str) -> None: ...

    async def list_channels(self, scope_id: str) -> list[Channel]: ...

    async def get_channel(self, scope_id: str, channel_id: str) -> Channel | None: ...

    async def get_broadcast_override(self, scope_id: str, channel_id: str) -> Override: ...

    async def set_broadcast_override(
        self, scope_id: str, channel_id: str, override: Override
    ) -> None:
        """Apply an override for the everyone principal; INHERITED removes it."""
        ...

    async def restrict_role_in_channel(
        self, scope_id: str, channel_id: str, role_id: str
    ) -> None:
        """Deny send, react, speak and connect for role_id in the channel."""
        ...
