import asyncio
import itertools
from dataclasses import replace

import pytest
import pytest_asyncio

from warden.database.store import MemoryConfigStore
from warden.platform import Actor, Capability, Channel, ChannelKind, Member, Override
from warden.services.timers import create_scheduler

SCOPE = "guild-1"


class FakeGateway:
    """In-memory stand-in for a chat platform."""

    def __init__(self):
        self.members: dict[tuple[str, str], Member] = {}
        self.roles: dict[str, dict[str, str]] = {}
        self.channels: dict[str, dict[str, Channel]] = {}
        self.overrides: dict[tuple[str, str], Override] = {}
        self.restricted: list[tuple[str, str, str]] = []
        self.role_changes: list[tuple[str, str, str, str]] = []
        self.failing_channels: set[str] = set()
        self._role_ids = itertools.count(100)

    # Test setup helpers

    def add_member(self, scope_id, user_id, rank=0, role_ids=()):
        member = Member(id=user_id, role_ids=frozenset(role_ids), rank=rank)
        self.members[(scope_id, user_id)] = member
        return member

    def add_channel(self, scope_id, channel_id, kind=ChannelKind.TEXT, override=Override.INHERITED):
        self.channels.setdefault(scope_id, {})[channel_id] = Channel(id=channel_id, kind=kind)
        if override is not Override.INHERITED:
            self.overrides[(scope_id, channel_id)] = override

    def override_of(self, scope_id, channel_id):
        return self.overrides.get((scope_id, channel_id), Override.INHERITED)

    def has_explicit_override(self, scope_id, channel_id):
        return (scope_id, channel_id) in self.overrides

    # PlatformGateway

    async def fetch_member(self, scope_id, user_id):
        return self.members.get((scope_id, user_id))

    async def find_role(self, scope_id, name):
        return self.roles.get(scope_id, {}).get(name)

    async def create_role(self, scope_id, name):
        role_id = f"role-{next(self._role_ids)}"
        self.roles.setdefault(scope_id, {})[name] = role_id
        return role_id

    async def add_role(self, scope_id, user_id, role_id, reason):
        member = self.members[(scope_id, user_id)]
        self.members[(scope_id, user_id)] = replace(member, role_ids=member.role_ids | {role_id})
        self.role_changes.append(("add", scope_id, user_id, role_id))

    async def remove_role(self, scope_id, user_id, role_id, reason):
        member = self.members[(scope_id, user_id)]
        self.members[(scope_id, user_id)] = replace(member, role_ids=member.role_ids - {role_id})
        self.role_changes.append(("remove", scope_id, user_id, role_id))

    async def list_channels(self, scope_id):
        return list(self.channels.get(scope_id, {}).values())

    async def get_channel(self, scope_id, channel_id):
        return self.channels.get(scope_id, {}).get(channel_id)

    async def get_broadcast_override(self, scope_id, channel_id):
        return self.override_of(scope_id, channel_id)

    async def set_broadcast_override(self, scope_id, channel_id, override):
        if channel_id in self.failing_channels:
            raise RuntimeError(f"Missing access to {channel_id}")
        if override is Override.INHERITED:
            self.overrides.pop((scope_id, channel_id), None)
        else:
            self.overrides[(scope_id, channel_id)] = override

    async def restrict_role_in_channel(self, scope_id, channel_id, role_id):
        if channel_id in self.failing_channels:
            raise RuntimeError(f"Missing access to {channel_id}")
        self.restricted.append((scope_id, channel_id, role_id))


def make_actor(user_id="mod-1", rank=10, role_ids=(), capabilities=()):
    return Actor(
        id=user_id,
        role_ids=frozenset(role_ids),
        rank=rank,
        capabilities=frozenset(capabilities),
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store():
    return MemoryConfigStore()


@pytest.fixture
def admin():
    return make_actor("admin-1", rank=100, capabilities=[Capability.ADMINISTRATOR])


@pytest.fixture
def moderator():
    return make_actor(
        "mod-1",
        rank=10,
        role_ids=["role-mods"],
        capabilities=[
            Capability.MANAGE_ROLES,
            Capability.MANAGE_MESSAGES,
            Capability.MANAGE_CHANNELS,
        ],
    )


@pytest_asyncio.fixture
async def scheduler():
    scheduler = create_scheduler()
    scheduler.start()
    yield scheduler
    scheduler.shutdown(wait=False)
    await asyncio.sleep(0)
