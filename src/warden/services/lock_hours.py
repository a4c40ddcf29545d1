"""
Lock-hour scheduler for the Warden moderation engine.

Runs a scope's lockdown on a daily wall-clock window: one recurring timer
engages the lockdown at the start time and another lifts it at the end
time. Times are given in a fixed reference timezone. Schedules are
persisted; timers are not, so start-up re-arms them from the stored
schedules.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from warden.database.models import ClockTime, LockHourSchedule, now_ms
from warden.database.store import ConfigStore, lockhour_key
from warden.errors import AlreadyInState, InvalidArgument, ModerationError
from warden.services.lockdown import LockdownManager
from warden.services.timers import DailyTrigger, cancel_job

logger = logging.getLogger(__name__)


def get_lockhour_job_names(scope_id: str) -> tuple[str, str]:
    """
    Generate consistent job names for a scope's lock-hour timers.

    Returns:
        tuple[str, str]: (engage job name, lift job name).
    """
    return f"lockhour_engage_{scope_id}", f"lockhour_lift_{scope_id}"


class LockHourScheduler:
    """
    Daily lockdown window per scope.

    Attributes:
        lockdown: Lockdown manager driven by the timers.
        store: Config store holding the schedules.
        scheduler: Timer scheduler.
        tz: Fixed-offset reference timezone of all schedules.
    """

    def __init__(
        self,
        lockdown: LockdownManager,
        store: ConfigStore,
        scheduler: AsyncIOScheduler,
        tz: timezone,
    ):
        self.lockdown = lockdown
        self.store = store
        self.scheduler = scheduler
        self.tz = tz

    async def get_schedule(self, scope_id: str) -> LockHourSchedule | None:
        document = await self.store.get(lockhour_key(scope_id))
        if not document:
            return None
        return LockHourSchedule.model_validate(document)

    def _cancel(self, scope_id: str) -> None:
        for job_id in get_lockhour_job_names(scope_id):
            cancel_job(self.scheduler, job_id)

    def _arm(self, scope_id: str, schedule: LockHourSchedule) -> None:
        engage_job, lift_job = get_lockhour_job_names(scope_id)
        self.scheduler.add_job(
            self._run_engage,
            trigger=DailyTrigger(schedule.start.hour, schedule.start.minute, self.tz),
            id=engage_job,
            name=engage_job,
            args=[scope_id],
            replace_existing=True,
        )
        self.scheduler.add_job(
            self._run_lift,
            trigger=DailyTrigger(schedule.end.hour, schedule.end.minute, self.tz),
            id=lift_job,
            name=lift_job,
            args=[scope_id],
            replace_existing=True,
        )
        logger.info(
            f"Lock hours armed for scope {scope_id}: {schedule.start} -> {schedule.end} ({self.tz})"
        )

    async def configure(
        self,
        scope_id: str,
        start: ClockTime,
        end: ClockTime,
        actor_id: str,
        enabled: bool = True,
    ) -> LockHourSchedule:
        """
        Set a scope's daily lock window, replacing any previous one.

        The schedule is persisted first; only then are the old timers
        cancelled and the new ones armed.

        Args:
            scope_id: Scope ID.
            start: Time of day to engage the lockdown.
            end: Time of day to lift it.
            actor_id: Actor making the change.
            enabled: Arm the timers (False stores the window disarmed).

        Returns:
            LockHourSchedule: The stored schedule.

        Raises:
            InvalidArgument: Start and end are the same time.
            BackendUnavailable: The schedule could not be persisted.
        """
        if (start.hour, start.minute) == (end.hour, end.minute):
            raise InvalidArgument("Lock start and end times must differ")

        schedule = LockHourSchedule(
            enabled=enabled,
            start=start,
            end=end,
            configured_by=actor_id,
            configured_at=now_ms(),
        )
        await self.store.set(lockhour_key(scope_id), schedule.to_document())

        self._cancel(scope_id)
        if enabled:
            self._arm(scope_id, schedule)
        return schedule

    async def disable(self, scope_id: str) -> None:
        """
        Cancel both timers and delete the stored schedule.

        Raises:
            BackendUnavailable: The schedule could not be deleted.
        """
        self._cancel(scope_id)
        await self.store.delete(lockhour_key(scope_id))
        logger.info(f"Lock hours disabled for scope {scope_id}")

    async def restore(self, scope_ids: Iterable[str]) -> int:
        """
        Re-arm every enabled persisted schedule after a restart.

        Next occurrences are computed from the current time; time elapsed
        before the restart is not carried over.

        Args:
            scope_ids: Scopes served by this process.

        Returns:
            int: Number of scopes re-armed.
        """
        restored = 0
        for scope_id in scope_ids:
            try:
                schedule = await self.get_schedule(scope_id)
            except ValueError as e:
                logger.error(f"Stored lock hours for scope {scope_id} are invalid: {e}")
                continue
            if schedule is None or not schedule.enabled:
                continue
            self._cancel(scope_id)
            self._arm(scope_id, schedule)
            restored += 1

        logger.info(f"Lock hours restored for {restored} scope(s)")
        return restored

    def next_runs(self, scope_id: str) -> tuple[datetime | None, datetime | None]:
        """Next engage and lift instants, None where no timer is armed."""
        runs = []
        for job_id in get_lockhour_job_names(scope_id):
            job = self.scheduler.get_job(job_id)
            runs.append(getattr(job, "next_run_time", None) if job else None)
        return runs[0], runs[1]

    async def _run_engage(self, scope_id: str) -> None:
        try:
            await self.lockdown.engage(scope_id)
        except AlreadyInState:
            logger.info(f"Scheduled lockdown skipped for scope {scope_id}: already locked")
        except ModerationError as e:
            logger.error(f"Scheduled lockdown failed for scope {scope_id}: {e.message}")
        except Exception as e:
            logger.error(f"Scheduled lockdown failed for scope {scope_id}: {e}", exc_info=True)

    async def _run_lift(self, scope_id: str) -> None:
        try:
            await self.lockdown.lift(scope_id)
        except ModerationError as e:
            logger.error(f"Scheduled unlock failed for scope {scope_id}: {e.message}")
        except Exception as e:
            logger.error(f"Scheduled unlock failed for scope {scope_id}: {e}", exc_info=True)
