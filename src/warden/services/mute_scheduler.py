"""
Mute scheduler for the Warden moderation engine.

Applies the restriction role to a subject and guarantees its automatic
removal when the mute expires. Pending expiries live in a registry owned by
the scheduler instance, keyed by (scope, subject); a newer mute replaces the
older record and its timer, and a generation token turns any stale callback
into a no-op.
"""

import itertools
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from warden.constants import AUTO_UNMUTE_REASON, DEFAULT_REASON, MUTE_REASON, UNMUTE_REASON
from warden.errors import (
    ActionFailed,
    InvalidArgument,
    ModerationError,
    NotFound,
    NotInState,
)
from warden.platform import Actor, Member, PlatformGateway, RankComparator, compare_by_rank
from warden.services.authorization import ensure_outranks
from warden.services.timers import cancel_job

logger = logging.getLogger(__name__)


def get_mute_job_name(scope_id: str, user_id: str) -> str:
    """
    Generate consistent job name for a mute expiry.

    Args:
        scope_id: Scope ID.
        user_id: Muted user ID.

    Returns:
        str: Standardized job name for the expiry timer.
    """
    return f"mute_expiry_{scope_id}_{user_id}"


@dataclass
class MuteRecord:
    """
    A live mute awaiting expiry.

    Attributes:
        scope_id: Scope ID.
        user_id: Muted user ID.
        role_id: Restriction role applied.
        expires_at: Instant the mute is lifted automatically.
        job_id: Timer job name.
        token: Generation token; only the expiry holding the current token acts.
    """

    scope_id: str
    user_id: str
    role_id: str
    expires_at: datetime
    job_id: str
    token: int


class MuteScheduler:
    """
    Time-bounded restriction role management.

    Attributes:
        gateway: Host platform gateway.
        scheduler: Timer scheduler running expiry jobs.
        role_name: Name of the restriction role.
    """

    def __init__(
        self,
        gateway: PlatformGateway,
        scheduler: AsyncIOScheduler,
        role_name: str = "Muted (Bot)",
        compare_rank: RankComparator = compare_by_rank,
    ):
        self.gateway = gateway
        self.scheduler = scheduler
        self.role_name = role_name
        self.compare_rank = compare_rank
        self._records: dict[tuple[str, str], MuteRecord] = {}
        # Latest token per subject; an expiry only removes the role while it holds it
        self._generations: dict[tuple[str, str], int] = {}
        self._tokens = itertools.count(1)

    def active_mute(self, scope_id: str, user_id: str) -> MuteRecord | None:
        return self._records.get((scope_id, user_id))

    def active_mutes(self, scope_id: str) -> list[MuteRecord]:
        return [record for (scope, _), record in self._records.items() if scope == scope_id]

    async def _fetch_member(self, scope_id: str, user_id: str) -> Member:
        try:
            member = await self.gateway.fetch_member(scope_id, user_id)
        except Exception as e:
            raise ActionFailed(f"Could not look up user {user_id}: {e}") from e
        if member is None:
            raise NotFound(f"User {user_id} is not in this server")
        return member

    async def ensure_restriction_role(self, scope_id: str) -> str:
        """
        Find the restriction role, creating it on first use in a scope.

        A newly created role is denied send/react/speak/connect on every
        channel that exists right now; channels created later are not
        covered. Per-channel failures are logged and skipped.

        Returns:
            str: The restriction role ID.

        Raises:
            ActionFailed: If the role could not be found or created.
        """
        try:
            role_id = await self.gateway.find_role(scope_id, self.role_name)
            if role_id is not None:
                return role_id
            role_id = await self.gateway.create_role(scope_id, self.role_name)
            channels = await self.gateway.list_channels(scope_id)
        except Exception as e:
            raise ActionFailed(f"Could not prepare the '{self.role_name}' role: {e}") from e

        logger.info(f"Created restriction role {role_id} in scope {scope_id}")
        for channel in channels:
            try:
                await self.gateway.restrict_role_in_channel(scope_id, channel.id, role_id)
            except Exception as e:
                logger.warning(
                    f"Could not restrict role {role_id} in channel {channel.id} "
                    f"(scope {scope_id}): {e}"
                )
        return role_id

    def _cancel(self, scope_id: str, user_id: str) -> MuteRecord | None:
        record = self._records.pop((scope_id, user_id), None)
        if record is not None:
            cancel_job(self.scheduler, record.job_id)
        return record

    def _arm(self, scope_id: str, user_id: str, role_id: str, duration_ms: int) -> MuteRecord:
        # Synchronous from cancel to add: no expiry can slip in between
        self._cancel(scope_id, user_id)

        token = next(self._tokens)
        job_id = get_mute_job_name(scope_id, user_id)
        expires_at = datetime.now(UTC) + timedelta(milliseconds=duration_ms)
        self.scheduler.add_job(
            self._expire,
            trigger=DateTrigger(run_date=expires_at),
            id=job_id,
            name=job_id,
            args=[scope_id, user_id, token],
            replace_existing=True,
        )
        record = MuteRecord(
            scope_id=scope_id,
            user_id=user_id,
            role_id=role_id,
            expires_at=expires_at,
            job_id=job_id,
            token=token,
        )
        self._generations[(scope_id, user_id)] = token
        self._records[(scope_id, user_id)] = record
        return record

    async def mute(
        self,
        scope_id: str,
        user_id: str,
        duration_ms: int,
        reason: str | None,
        issuer: Actor,
    ) -> MuteRecord:
        """
        Mute a subject for a fixed duration.

        Args:
            scope_id: Scope ID.
            user_id: Subject to mute.
            duration_ms: Positive duration in milliseconds.
            reason: Reason text (default reason when empty).
            issuer: Actor applying the mute.

        Returns:
            MuteRecord: The live record, replacing any earlier one.

        Raises:
            InvalidArgument: Duration is not a positive integer.
            NotFound: Subject is not a member.
            HierarchyViolation: Issuer does not strictly outrank the subject.
            ActionFailed: The platform refused the role change.
        """
        if isinstance(duration_ms, bool) or not isinstance(duration_ms, int) or duration_ms <= 0:
            raise InvalidArgument("Mute duration must be a positive number of milliseconds")

        member = await self._fetch_member(scope_id, user_id)
        ensure_outranks(issuer, member, self.compare_rank)

        role_id = await self.ensure_restriction_role(scope_id)
        audit_reason = MUTE_REASON.format(issuer_id=issuer.id, reason=reason or DEFAULT_REASON)
        try:
            await self.gateway.add_role(scope_id, user_id, role_id, audit_reason)
        except Exception as e:
            raise ActionFailed(f"Could not apply the mute role: {e}") from e

        record = self._arm(scope_id, user_id, role_id, duration_ms)
        logger.info(
            f"User {user_id} muted in scope {scope_id} by {issuer.id} "
            f"until {record.expires_at.isoformat()}"
        )
        return record

    async def unmute(self, scope_id: str, user_id: str, issuer: Actor | None = None) -> None:
        """
        Lift a mute before it expires.

        Raises:
            NotFound: Subject is not a member.
            NotInState: Subject does not hold the restriction role.
            ActionFailed: The platform refused the role change.
        """
        member = await self._fetch_member(scope_id, user_id)
        try:
            role_id = await self.gateway.find_role(scope_id, self.role_name)
        except Exception as e:
            raise ActionFailed(f"Could not look up the '{self.role_name}' role: {e}") from e
        if role_id is None or not member.has_role(role_id):
            raise NotInState(f"User {user_id} is not muted")

        # Cancel before the await so a concurrent expiry finds nothing to do
        self._cancel(scope_id, user_id)
        marker = next(self._tokens)
        self._generations[(scope_id, user_id)] = marker

        audit_reason = UNMUTE_REASON.format(issuer_id=issuer.id if issuer else "system")
        try:
            await self.gateway.remove_role(scope_id, user_id, role_id, audit_reason)
        except Exception as e:
            raise ActionFailed(f"Could not remove the mute role: {e}") from e
        finally:
            if self._generations.get((scope_id, user_id)) == marker:
                del self._generations[(scope_id, user_id)]

        logger.info(f"User {user_id} unmuted in scope {scope_id}")

    async def _expire(self, scope_id: str, user_id: str, token: int) -> None:
        """
        Expiry callback: lift the mute if this timer is still current.

        Runs on the scheduler, so failures are logged rather than raised.
        """
        record = self._records.get((scope_id, user_id))
        if record is None or record.token != token:
            logger.debug(f"Stale mute expiry for user {user_id} in scope {scope_id}, skipping")
            return
        del self._records[(scope_id, user_id)]

        try:
            member = await self.gateway.fetch_member(scope_id, user_id)
            if member is None:
                logger.info(f"Muted user {user_id} left scope {scope_id} before expiry")
                return
            role_id = await self.gateway.find_role(scope_id, self.role_name)
            if role_id is None or not member.has_role(role_id):
                logger.debug(f"User {user_id} no longer holds the mute role, nothing to lift")
                return
            if self._generations.get((scope_id, user_id)) != token:
                logger.debug(f"Mute for user {user_id} was renewed or lifted meanwhile, skipping")
                return
            await self.gateway.remove_role(scope_id, user_id, role_id, AUTO_UNMUTE_REASON)
            logger.info(f"Mute expired for user {user_id} in scope {scope_id}")
        except NotFound:
            logger.info(f"Muted user {user_id} left scope {scope_id} before expiry")
        except ModerationError as e:
            logger.error(f"Automatic unmute failed for user {user_id}: {e.message}")
        except Exception as e:
            logger.error(
                f"Automatic unmute failed for user {user_id} in scope {scope_id}: {e}",
                exc_info=True,
            )
        finally:
            if self._generations.get((scope_id, user_id)) == token:
                del self._generations[(scope_id, user_id)]

    def cancel_all(self) -> None:
        """Cancel every pending expiry (used on shutdown)."""
        for scope_id, user_id in list(self._records):
            self._cancel(scope_id, user_id)
        self._generations.clear()
