"""
Warning ledger for the Warden moderation engine.

Keeps a per-subject infraction counter within each scope. Counts only grow
until an explicit clear; there is no decay.
"""

import logging

from warden.constants import DEFAULT_REASON
from warden.database.models import WarnRecord, now_ms
from warden.database.store import ConfigStore, warns_key
from warden.errors import ActionFailed, NotFound
from warden.platform import Actor, PlatformGateway, RankComparator, compare_by_rank
from warden.services.authorization import ensure_outranks

logger = logging.getLogger(__name__)


class WarnLedger:
    """
    Per-user warning counters built on the config store.

    When constructed with a gateway, issuing a warning also checks that the
    subject is still a member and is strictly outranked by the issuer.
    """

    def __init__(
        self,
        store: ConfigStore,
        gateway: PlatformGateway | None = None,
        compare_rank: RankComparator = compare_by_rank,
    ):
        self.store = store
        self.gateway = gateway
        self.compare_rank = compare_rank

    async def _check_subject(self, scope_id: str, subject_id: str, issuer: Actor) -> None:
        try:
            member = await self.gateway.fetch_member(scope_id, subject_id)
        except Exception as e:
            raise ActionFailed(f"Could not look up user {subject_id}: {e}") from e
        if member is None:
            raise NotFound(f"User {subject_id} is not in this server")
        ensure_outranks(issuer, member, self.compare_rank)

    async def issue(
        self, scope_id: str, subject_id: str, reason: str | None, issuer: Actor
    ) -> int:
        """
        Record one more warning for a subject.

        Args:
            scope_id: Scope ID.
            subject_id: Warned user ID.
            reason: Reason text (default reason when empty).
            issuer: Actor issuing the warning.

        Returns:
            int: The subject's new warning count.

        Raises:
            NotFound: Subject is not a member (gateway configured).
            HierarchyViolation: Issuer does not outrank the subject.
            BackendUnavailable: Record could not be read or written.
        """
        if self.gateway is not None:
            await self._check_subject(scope_id, subject_id, issuer)

        key = warns_key(scope_id, subject_id)
        # Strict read so an outage cannot reset the counter to 1
        current = WarnRecord.model_validate(await self.store.load(key) or {})

        record = WarnRecord(
            count=current.count + 1,
            last_reason=reason or DEFAULT_REASON,
            last_issued_by=issuer.id,
            last_issued_at=now_ms(),
        )
        await self.store.set(key, record.to_document())

        logger.info(
            f"User {subject_id} warned in scope {scope_id} by {issuer.id} "
            f"(total: {record.count})"
        )
        return record.count

    async def record(self, scope_id: str, subject_id: str) -> WarnRecord | None:
        document = await self.store.get(warns_key(scope_id, subject_id))
        if not document:
            return None
        return WarnRecord.model_validate(document)

    async def query(self, scope_id: str, subject_id: str) -> int:
        """Current warning count, 0 when absent or unreadable."""
        record = await self.record(scope_id, subject_id)
        return record.count if record else 0

    async def clear(self, scope_id: str, subject_id: str) -> None:
        """
        Remove a subject's warnings. Clearing an absent record is a no-op.

        Raises:
            BackendUnavailable: If the delete failed.
        """
        await self.store.delete(warns_key(scope_id, subject_id))
        logger.info(f"Warnings cleared for user {subject_id} in scope {scope_id}")
