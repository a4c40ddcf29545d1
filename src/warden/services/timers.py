"""
Timer layer for the Warden moderation engine.

One-shot expiries and daily recurrences both run as APScheduler jobs on the
asyncio event loop. Each job has a deterministic id so the owning component
can cancel or replace it synchronously.
"""

import logging
from datetime import UTC, datetime, timedelta, timezone

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

logger = logging.getLogger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """
    Build the scheduler that runs every engine timer.

    Jobs never expire as misfired: a callback delayed by a busy loop still
    runs, late rather than never.
    """
    return AsyncIOScheduler(
        timezone="UTC",
        job_defaults={"misfire_grace_time": None, "coalesce": True, "max_instances": 1},
    )


def reference_timezone(offset_minutes: int) -> timezone:
    """Fixed-offset timezone (no daylight-saving rules)."""
    return timezone(timedelta(minutes=offset_minutes))


def next_occurrence(hour: int, minute: int, tz: timezone, now: datetime) -> datetime:
    """
    Compute the next wall-clock occurrence of a time of day.

    Today's occurrence is used if it is still strictly ahead of now,
    otherwise tomorrow's.

    Args:
        hour: Hour in the reference timezone.
        minute: Minute in the reference timezone.
        tz: Reference timezone.
        now: Current instant (timezone-aware).

    Returns:
        datetime: The next occurrence, expressed in the reference timezone.
    """
    local_now = now.astimezone(tz)
    candidate = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= local_now:
        candidate += timedelta(days=1)
    return candidate


def delay_until(hour: int, minute: int, tz: timezone, now: datetime) -> timedelta:
    """Time remaining from now until the next occurrence of hour:minute."""
    return next_occurrence(hour, minute, tz, now) - now


class DailyTrigger(BaseTrigger):
    """
    Fires once a day at a fixed time of day in a fixed-offset timezone.

    Every fire time is recomputed from wall-clock state, so a restarted
    process or a late callback always lands on the next real occurrence.
    """

    def __init__(self, hour: int, minute: int, tz: timezone):
        self.hour = hour
        self.minute = minute
        self.tz = tz

    def get_next_fire_time(self, previous_fire_time, now):
        reference = now if previous_fire_time is None else max(previous_fire_time, now)
        return next_occurrence(self.hour, self.minute, self.tz, reference).astimezone(UTC)

    def __str__(self):
        return f"daily[{self.hour:02d}:{self.minute:02d} {self.tz}]"

    def __repr__(self):
        return f"<DailyTrigger (hour={self.hour}, minute={self.minute}, tz={self.tz!r})>"


def cancel_job(scheduler: AsyncIOScheduler, job_id: str) -> bool:
    """
    Remove a scheduled job if it is still pending.

    Returns:
        bool: True if a pending job was removed.
    """
    try:
        scheduler.remove_job(job_id)
    except JobLookupError:
        return False
    logger.debug(f"Cancelled timer {job_id}")
    return True
