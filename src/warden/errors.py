"""
Typed failures returned to the command-dispatch layer.

Every failure the engine reports is a ModerationError subclass carrying a
stable ``kind`` string, so callers can pick a user-facing message without
inspecting transport exceptions.
"""


class ModerationError(Exception):
    """Base class for all engine failures."""

    kind = "ModerationError"

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind


class CapabilityDenied(ModerationError):
    """Actor lacks the platform capability the action requires."""

    kind = "CapabilityDenied"


class Unconfigured(ModerationError):
    """Action has no role binding in this scope yet."""

    kind = "Unconfigured"


class RoleNotAuthorized(ModerationError):
    """Actor holds none of the roles bound to the action."""

    kind = "RoleNotAuthorized"


class HierarchyViolation(ModerationError):
    """Target's rank is not strictly below the actor's."""

    kind = "HierarchyViolation"


class NotFound(ModerationError):
    """Target user, channel, role or record is absent."""

    kind = "NotFound"


class CapacityExceeded(ModerationError):
    """Role set for an action is already full."""

    kind = "CapacityExceeded"


class AlreadyInState(ModerationError):
    kind = "AlreadyInState"


class NotInState(ModerationError):
    kind = "NotInState"


class BackendUnavailable(ModerationError):
    """Config store read or write failed."""

    kind = "BackendUnavailable"


class ParseError(ModerationError):
    """Duration or time-of-day text did not match the grammar."""

    kind = "ParseError"


class InvalidArgument(ModerationError):
    kind = "InvalidArgument"


class ActionFailed(ModerationError):
    """Host platform refused or failed to apply a change."""

    kind = "ActionFailed"


class SessionMismatch(ModerationError):
    """Interactive session belongs to a different actor."""

    kind = "SessionMismatch"
