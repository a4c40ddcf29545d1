"""
Interactive session table for the Warden moderation engine.

Multi-step flows (picking roles for an action, confirming a removal) hand
the UI an opaque nonce instead of packing action, role and actor into the
button payload. The nonce resolves to a short-lived record owned by one
actor.
"""

import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from warden.errors import NotFound, SessionMismatch

logger = logging.getLogger(__name__)


@dataclass
class SetupSession:
    """
    State of one interactive flow.

    Attributes:
        nonce: Opaque session key handed to the UI.
        actor_id: The only actor allowed to drive the session.
        action: Action being configured.
        role_id: Role the flow is about, if any.
        expires_at: Monotonic deadline.
        payload: Extra UI state.
    """

    nonce: str
    actor_id: str
    action: str
    role_id: str | None
    expires_at: float
    payload: dict[str, Any] = field(default_factory=dict)


class SessionRegistry:
    def __init__(self, ttl_seconds: float = 120, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, SetupSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def open(
        self,
        actor_id: str,
        action: str,
        role_id: str | None = None,
        **payload: Any,
    ) -> str:
        """
        Start a session and return its nonce.

        Expired sessions are purged on every open.
        """
        self.purge()
        nonce = secrets.token_urlsafe(12)
        self._sessions[nonce] = SetupSession(
            nonce=nonce,
            actor_id=actor_id,
            action=action,
            role_id=role_id,
            expires_at=self._clock() + self.ttl_seconds,
            payload=payload,
        )
        logger.debug(f"Opened session {nonce} for actor {actor_id} ({action})")
        return nonce

    def resolve(self, nonce: str, actor_id: str) -> SetupSession:
        """
        Look up a live session for the actor pressing a control.

        Raises:
            NotFound: Unknown or expired nonce.
            SessionMismatch: Session belongs to another actor.
        """
        session = self._sessions.get(nonce)
        if session is None:
            raise NotFound("This panel has expired or is invalid")
        if session.expires_at <= self._clock():
            del self._sessions[nonce]
            raise NotFound("This panel has expired or is invalid")
        if session.actor_id != actor_id:
            raise SessionMismatch("Only the user who opened this panel can use it")
        return session

    def close(self, nonce: str) -> None:
        self._sessions.pop(nonce, None)

    def purge(self) -> int:
        """Drop expired sessions; returns how many were removed."""
        now = self._clock()
        expired = [nonce for nonce, s in self._sessions.items() if s.expires_at <= now]
        for nonce in expired:
            del self._sessions[nonce]
        return len(expired)
