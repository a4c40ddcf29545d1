"""
Lockdown manager for the Warden moderation engine.

A lockdown denies broadcast for the everyone principal on every
broadcast-capable channel, after recording what each channel had before so
that lifting restores it exactly. Both directions are best-effort across
channels: a failing channel is logged and skipped, never rolled back.
"""

import logging
from dataclasses import dataclass, field

from warden.constants import BROADCAST_CHANNEL_KINDS
from warden.database.store import ConfigStore, lockdown_key
from warden.errors import ActionFailed, AlreadyInState, NotFound
from warden.platform import Channel, Override, PlatformGateway

logger = logging.getLogger(__name__)


@dataclass
class LockdownReport:
    """
    Per-channel outcome of an engage or lift.

    Attributes:
        changed: Channel IDs updated successfully.
        skipped: Channel IDs recorded in the snapshot but no longer present.
        failed: Channel IDs whose update failed.
    """

    changed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.changed) + len(self.skipped) + len(self.failed)


class LockdownManager:
    """
    Snapshot/restore of a scope's broadcast permissions.

    Snapshots are cached per scope in this instance and persisted under the
    scope's lockdown key. A scope can hold only one snapshot: engaging while
    one exists is refused.
    """

    def __init__(self, gateway: PlatformGateway, store: ConfigStore):
        self.gateway = gateway
        self.store = store
        self._snapshots: dict[str, dict[str, str]] = {}
        self._engaging: set[str] = set()

    async def is_engaged(self, scope_id: str) -> bool:
        if scope_id in self._snapshots or scope_id in self._engaging:
            return True
        return bool(await self.store.get(lockdown_key(scope_id)))

    async def _broadcast_channels(self, scope_id: str) -> list[Channel]:
        try:
            channels = await self.gateway.list_channels(scope_id)
        except Exception as e:
            raise ActionFailed(f"Could not list channels: {e}") from e
        return [channel for channel in channels if channel.kind in BROADCAST_CHANNEL_KINDS]

    async def engage(self, scope_id: str, actor_id: str | None = None) -> LockdownReport:
        """
        Lock every broadcast channel in a scope.

        Args:
            scope_id: Scope ID.
            actor_id: Actor triggering the lockdown (None for scheduled runs).

        Returns:
            LockdownReport: Channels locked and channels that failed.

        Raises:
            AlreadyInState: A lockdown snapshot already exists for the scope.
            ActionFailed: Channels could not be listed.
            BackendUnavailable: Snapshot could not be persisted (channels
                stay locked; the in-memory snapshot still allows lifting).
        """
        # Claimed before the first await so a racing engage sees it
        if scope_id in self._engaging or scope_id in self._snapshots:
            raise AlreadyInState("A lockdown is already active in this server")
        self._engaging.add(scope_id)
        try:
            if await self.store.get(lockdown_key(scope_id)):
                raise AlreadyInState("A lockdown is already active in this server")

            report = LockdownReport()
            snapshot: dict[str, str] = {}
            for channel in await self._broadcast_channels(scope_id):
                try:
                    previous = await self.gateway.get_broadcast_override(scope_id, channel.id)
                    snapshot[channel.id] = Override(previous).value
                    await self.gateway.set_broadcast_override(scope_id, channel.id, Override.DENY)
                    report.changed.append(channel.id)
                except Exception as e:
                    logger.warning(f"Lockdown failed for channel {channel.id} (scope {scope_id}): {e}")
                    report.failed.append(channel.id)

            self._snapshots[scope_id] = snapshot
        finally:
            self._engaging.discard(scope_id)

        await self.store.set(lockdown_key(scope_id), snapshot)
        logger.info(
            f"Lockdown engaged in scope {scope_id} by {actor_id or 'schedule'}: "
            f"{len(report.changed)} locked, {len(report.failed)} failed"
        )
        return report

    async def _load_snapshot(self, scope_id: str) -> dict[str, str]:
        if scope_id in self._snapshots:
            return self._snapshots[scope_id]
        return await self.store.get(lockdown_key(scope_id), {}) or {}

    async def lift(self, scope_id: str, actor_id: str | None = None) -> LockdownReport:
        """
        Restore every channel recorded by the last engage.

        A missing snapshot makes this a no-op. Channels deleted since the
        engage are skipped. The snapshot is removed afterwards even if some
        channels failed.

        Raises:
            BackendUnavailable: Snapshot could not be deleted from the store.
        """
        snapshot = await self._load_snapshot(scope_id)
        report = LockdownReport()

        for channel_id, previous in snapshot.items():
            try:
                channel = await self.gateway.get_channel(scope_id, channel_id)
                if channel is None:
                    report.skipped.append(channel_id)
                    continue
                await self.gateway.set_broadcast_override(scope_id, channel_id, Override(previous))
                report.changed.append(channel_id)
            except Exception as e:
                logger.warning(f"Lockdown restore failed for channel {channel_id} (scope {scope_id}): {e}")
                report.failed.append(channel_id)

        self._snapshots.pop(scope_id, None)
        await self.store.delete(lockdown_key(scope_id))
        logger.info(
            f"Lockdown lifted in scope {scope_id} by {actor_id or 'schedule'}: "
            f"{len(report.changed)} restored, {len(report.skipped)} gone, {len(report.failed)} failed"
        )
        return report

    async def _set_channel(self, scope_id: str, channel_id: str, override: Override) -> Channel:
        try:
            channel = await self.gateway.get_channel(scope_id, channel_id)
        except Exception as e:
            raise ActionFailed(f"Could not look up channel {channel_id}: {e}") from e
        if channel is None:
            raise NotFound(f"Channel {channel_id} not found")
        try:
            await self.gateway.set_broadcast_override(scope_id, channel_id, override)
        except Exception as e:
            raise ActionFailed(f"Could not change permissions in channel {channel_id}: {e}") from e
        return channel

    async def lock_channel(self, scope_id: str, channel_id: str) -> Channel:
        """
        Deny broadcast for everyone in a single channel.

        Raises:
            NotFound: Channel does not exist.
            ActionFailed: The platform refused the change.
        """
        channel = await self._set_channel(scope_id, channel_id, Override.DENY)
        logger.info(f"Channel {channel_id} locked in scope {scope_id}")
        return channel

    async def unlock_channel(self, scope_id: str, channel_id: str) -> Channel:
        """Explicitly allow broadcast for everyone in a single channel."""
        channel = await self._set_channel(scope_id, channel_id, Override.ALLOW)
        logger.info(f"Channel {channel_id} unlocked in scope {scope_id}")
        return channel
