"""
Authorization service for the Warden moderation engine.

Decides whether an actor may run a privileged action in a scope. A decision
combines the fixed platform capability table with the scope's own role
bindings, which admins edit through bind_role/unbind_role.
"""

import logging
from enum import StrEnum

from warden.constants import ACTION_CAPABILITIES, CONFIGURABLE_ACTIONS
from warden.database.models import CommandBinding, now_ms
from warden.database.store import ConfigStore, command_key
from warden.errors import (
    AlreadyInState,
    CapabilityDenied,
    CapacityExceeded,
    HierarchyViolation,
    RoleNotAuthorized,
    Unconfigured,
)
from warden.platform import Actor, Capability, Member, RankComparator, compare_by_rank

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROLES = 7


class AuthDecision(StrEnum):
    ALLOWED = "allowed"
    CAPABILITY_DENIED = "capability_denied"
    UNCONFIGURED = "unconfigured"
    ROLE_NOT_AUTHORIZED = "role_not_authorized"


def ensure_outranks(
    actor: Member,
    subject: Member,
    compare: RankComparator = compare_by_rank,
) -> None:
    """
    Require the actor to rank strictly above the subject.

    Equal rank is refused.

    Raises:
        HierarchyViolation: If the subject's rank is equal or higher.
    """
    if compare(actor, subject) <= 0:
        raise HierarchyViolation(
            f"User {actor.id} cannot act on {subject.id}: target rank is equal or higher"
        )


class AuthorizationEngine:
    """
    Role-binding based authorization for privileged actions.

    Attributes:
        store: Config store holding the CommandBinding documents.
        max_roles: Maximum number of roles bound to one action.
    """

    def __init__(self, store: ConfigStore, max_roles: int = DEFAULT_MAX_ROLES):
        self.store = store
        self.max_roles = max_roles

    async def get_binding(self, scope_id: str, action: str) -> CommandBinding:
        """
        Load the binding for an action, empty if absent or unreadable.

        Args:
            scope_id: Scope ID.
            action: Action name.

        Returns:
            CommandBinding: Stored binding (empty role set when unconfigured).
        """
        document = await self.store.get(command_key(scope_id, action))
        return CommandBinding.model_validate(document or {})

    async def bound_roles(self, scope_id: str, action: str) -> set[str]:
        binding = await self.get_binding(scope_id, action)
        return binding.role_ids

    async def configured_actions(
        self, scope_id: str, actions: list[str] | tuple[str, ...] = CONFIGURABLE_ACTIONS
    ) -> dict[str, set[str]]:
        """Map each action (the setup panel's list by default) to its bound roles."""
        return {action: await self.bound_roles(scope_id, action) for action in actions}

    async def check(self, actor: Actor, action: str, scope_id: str) -> AuthDecision:
        """
        Decide whether an actor may run an action in a scope.

        Steps:
        1. The actor must hold the platform capability the action requires
           (administrators always do; unknown actions are refused).
        2. The action must have at least one bound role.
        3. Administrators are allowed without holding a bound role.
        4. Everyone else needs one of the bound roles.

        Args:
            actor: Member invoking the action.
            action: Action name.
            scope_id: Scope ID.

        Returns:
            AuthDecision: The outcome.
        """
        capability = ACTION_CAPABILITIES.get(action)
        if capability is None or not actor.has_capability(capability):
            return AuthDecision.CAPABILITY_DENIED

        allowed_roles = await self.bound_roles(scope_id, action)
        if not allowed_roles:
            return AuthDecision.UNCONFIGURED

        if actor.is_admin:
            return AuthDecision.ALLOWED

        if actor.role_ids & allowed_roles:
            return AuthDecision.ALLOWED
        return AuthDecision.ROLE_NOT_AUTHORIZED

    async def can_execute(self, actor: Actor, action: str, scope_id: str) -> bool:
        return await self.check(actor, action, scope_id) is AuthDecision.ALLOWED

    async def ensure_can_execute(self, actor: Actor, action: str, scope_id: str) -> None:
        """
        Raise the typed failure matching a non-allowed decision.

        Raises:
            CapabilityDenied: Actor lacks the platform capability.
            Unconfigured: Action has no bound roles in this scope.
            RoleNotAuthorized: Actor holds none of the bound roles.
        """
        decision = await self.check(actor, action, scope_id)
        if decision is AuthDecision.CAPABILITY_DENIED:
            raise CapabilityDenied(f"Missing platform permission required for '{action}'")
        if decision is AuthDecision.UNCONFIGURED:
            raise Unconfigured(f"'{action}' has no authorized roles yet, run setup first")
        if decision is AuthDecision.ROLE_NOT_AUTHORIZED:
            raise RoleNotAuthorized(f"None of your roles may run '{action}'")

    def can_configure(self, actor: Actor) -> bool:
        """Only administrators and server managers may edit role bindings."""
        return actor.has_capability(Capability.MANAGE_GUILD)

    async def _load_for_update(self, scope_id: str, action: str) -> CommandBinding:
        # Strict read: a failed read must not be mistaken for an empty binding
        document = await self.store.load(command_key(scope_id, action))
        return CommandBinding.model_validate(document or {})

    async def bind_role(
        self, scope_id: str, action: str, role_id: str, setter_id: str
    ) -> CommandBinding:
        """
        Add a role to an action's binding.

        Args:
            scope_id: Scope ID.
            action: Action name.
            role_id: Role to authorize.
            setter_id: Actor making the change.

        Returns:
            CommandBinding: The updated binding.

        Raises:
            AlreadyInState: If the role is already bound (use unbind_role).
            CapacityExceeded: If the binding already holds max_roles roles.
            BackendUnavailable: If the binding could not be read or written.
        """
        binding = await self._load_for_update(scope_id, action)
        current = binding.role_ids

        if role_id in current:
            raise AlreadyInState(f"Role {role_id} is already authorized for '{action}'")
        if len(current) >= self.max_roles:
            raise CapacityExceeded(
                f"'{action}' already has {len(current)} roles (limit {self.max_roles})"
            )

        updated = CommandBinding(
            roles={**{rid: True for rid in current}, role_id: True},
            configured_by=setter_id,
            configured_at=now_ms(),
        )
        await self.store.set(command_key(scope_id, action), updated.to_document())
        logger.info(f"Role {role_id} bound to '{action}' in scope {scope_id} by {setter_id}")
        return updated

    async def unbind_role(
        self, scope_id: str, action: str, role_id: str, setter_id: str
    ) -> CommandBinding:
        """
        Remove a role from an action's binding; absent roles are a no-op.

        Raises:
            BackendUnavailable: If the binding could not be read or written.
        """
        binding = await self._load_for_update(scope_id, action)
        updated = CommandBinding(
            roles={rid: True for rid in binding.role_ids if rid != role_id},
            configured_by=setter_id,
            configured_at=now_ms(),
        )
        await self.store.set(command_key(scope_id, action), updated.to_document())
        logger.info(f"Role {role_id} unbound from '{action}' in scope {scope_id} by {setter_id}")
        return updated
