"""
Composition root for the Warden moderation engine.

Builds every component from settings around one config store and one timer
scheduler. Start-up order matters:
1. Timer scheduler starts on the running event loop
2. Persisted lock-hour schedules are re-armed for the served scopes
"""

import asyncio
import logging
from collections.abc import Iterable

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from warden.config import Settings, get_settings
from warden.database.service import create_config_store
from warden.database.store import ConfigStore
from warden.platform import PlatformGateway, RankComparator, compare_by_rank
from warden.services.authorization import AuthorizationEngine
from warden.services.lock_hours import LockHourScheduler
from warden.services.lockdown import LockdownManager
from warden.services.mute_scheduler import MuteScheduler
from warden.services.sessions import SessionRegistry
from warden.services.timers import create_scheduler, reference_timezone
from warden.services.warn_ledger import WarnLedger

logger = logging.getLogger(__name__)


class ModerationEngine:
    """
    All moderation components wired to one store and one scheduler.

    Independent instances share nothing, so tests can run several side by
    side.
    """

    def __init__(
        self,
        gateway: PlatformGateway,
        store: ConfigStore,
        settings: Settings,
        scheduler: AsyncIOScheduler | None = None,
        compare_rank: RankComparator = compare_by_rank,
    ):
        self.settings = settings
        self.store = store
        self.scheduler = scheduler or create_scheduler()

        self.authorization = AuthorizationEngine(store, max_roles=settings.max_roles_per_command)
        self.warns = WarnLedger(store, gateway=gateway, compare_rank=compare_rank)
        self.mutes = MuteScheduler(
            gateway,
            self.scheduler,
            role_name=settings.muted_role_name,
            compare_rank=compare_rank,
        )
        self.lockdown = LockdownManager(gateway, store)
        self.lock_hours = LockHourScheduler(
            self.lockdown,
            store,
            self.scheduler,
            reference_timezone(settings.lock_hour_utc_offset_minutes),
        )
        self.sessions = SessionRegistry(ttl_seconds=settings.session_ttl_seconds)

    @classmethod
    def from_settings(
        cls,
        gateway: PlatformGateway,
        settings: Settings | None = None,
        compare_rank: RankComparator = compare_by_rank,
    ) -> "ModerationEngine":
        """Build an engine with the config store strategy named in settings."""
        settings = settings or get_settings()
        return cls(gateway, create_config_store(settings), settings, compare_rank=compare_rank)

    async def start(self, scope_ids: Iterable[str] = ()) -> None:
        """
        Start timers and re-arm persisted lock hours.

        Must be awaited from inside the running event loop.

        Args:
            scope_ids: Scopes this process serves.
        """
        if not self.scheduler.running:
            self.scheduler.start()
        scope_ids = list(scope_ids)
        if not scope_ids:
            logger.warning("No scopes given at start-up, persisted lock hours were not restored")
        restored = await self.lock_hours.restore(scope_ids)
        logger.info(f"Moderation engine started ({restored} lock-hour schedule(s) armed)")

    async def shutdown(self) -> None:
        """Stop all timers and release the config store."""
        self.mutes.cancel_all()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            # Shutdown is queued on the loop by some APScheduler releases
            await asyncio.sleep(0)
        await self.store.close()
        logger.info("Moderation engine stopped")
