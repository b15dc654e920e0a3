"""Broker session state shared by every gateway command.

The session is written from two places: the command thread (on a successful
session exchange or logout) and the broker SDK's expiry hook, which may fire
on any thread. Compound updates are taken under a lock; readers of
`is_active` do a single attribute read and accept that the flag may flip
right after they look at it.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from core.logging import get_audit_logger_safe


class SessionEventType(str, Enum):
    ACTIVATED = "activated"
    EXPIRED = "expired"
    LOGGED_OUT = "logged_out"


@dataclass(frozen=True)
class SessionEvent:
    type: SessionEventType
    user_id: Optional[str]
    at: datetime
    reason: Optional[str] = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Point-in-time view of the session without any tokens."""
    is_active: bool
    user_id: Optional[str]
    activated_at: Optional[datetime]
    ended_at: Optional[datetime]
    end_reason: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_active": self.is_active,
            "user_id": self.user_id,
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "end_reason": self.end_reason,
        }


SessionListener = Callable[[SessionEvent], None]


class SessionState:
    """Two-state session: inactive until a token exchange, inactive again on expiry or logout."""

    def __init__(self):
        self._lock = threading.Lock()
        self._is_active = False
        self._access_token: Optional[str] = None
        self._public_token: Optional[str] = None
        self._user_id: Optional[str] = None
        self._activated_at: Optional[datetime] = None
        self._ended_at: Optional[datetime] = None
        self._end_reason: Optional[str] = None
        self._listeners: List[SessionListener] = []
        self.logger = get_audit_logger_safe("session_state")

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def public_token(self) -> Optional[str]:
        return self._public_token

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener for session transitions; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def activate(self, access_token: str, user_id: str, public_token: Optional[str] = None) -> None:
        if not access_token:
            raise ValueError("access_token is required to activate a session")
        now = datetime.now(timezone.utc)
        with self._lock:
            self._access_token = access_token
            self._public_token = public_token
            self._user_id = user_id
            self._activated_at = now
            self._ended_at = None
            self._end_reason = None
            self._is_active = True
        self.logger.info("Broker session activated", user_id=user_id)
        self._publish(SessionEvent(SessionEventType.ACTIVATED, user_id, now))

    def expire(self, reason: str = "token_expired") -> bool:
        """Mark the session stale. Returns False if it was already inactive."""
        return self._deactivate(SessionEventType.EXPIRED, reason)

    def logout(self, reason: str = "logout") -> bool:
        return self._deactivate(SessionEventType.LOGGED_OUT, reason)

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                is_active=self._is_active,
                user_id=self._user_id,
                activated_at=self._activated_at,
                ended_at=self._ended_at,
                end_reason=self._end_reason,
            )

    def _deactivate(self, event_type: SessionEventType, reason: str) -> bool:
        now = datetime.now(timezone.utc)
        with self._lock:
            if not self._is_active:
                return False
            self._is_active = False
            self._access_token = None
            self._public_token = None
            self._ended_at = now
            self._end_reason = reason
            user_id = self._user_id
        self.logger.warning("Broker session ended", user_id=user_id,
                            session_event=event_type.value, reason=reason)
        self._publish(SessionEvent(event_type, user_id, now, reason))
        return True

    def _publish(self, event: SessionEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                self.logger.error("Session listener failed", session_event=event.type.value,
                                  error=str(e), exc_info=True)
