"""Session token issuance and verification for caller identity."""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from threading import RLock
from typing import Callable, Optional

from backend.utils.config import Settings, get_settings


class AuthenticationError(Exception):
    """Base authentication failure."""


class InvalidSessionTokenError(AuthenticationError):
    """Raised when a bearer token is unknown, revoked or expired."""


@dataclass(frozen=True)
class Session:
    email: str
    expires_at: float


class AuthService:
    """Issues opaque bearer tokens bound to an email and resolves them back."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or get_settings()
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = RLock()

    def issue_token(self, email: str) -> str:
        normalized = email.strip()
        if not normalized:
            raise InvalidSessionTokenError("email is required to issue a session token")
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._purge_expired()
            self._sessions[token] = Session(
                email=normalized,
                expires_at=self._clock() + self._settings.session_ttl_seconds,
            )
        return token

    def resolve_caller(self, bearer_token: str) -> str:
        with self._lock:
            session = self._sessions.get(bearer_token)
            if session is None:
                raise InvalidSessionTokenError("Invalid bearer token")
            if session.expires_at <= self._clock():
                del self._sessions[bearer_token]
                raise InvalidSessionTokenError("Session expired. Request a new token.")
            return session.email

    def revoke(self, bearer_token: str) -> None:
        with self._lock:
            self._sessions.pop(bearer_token, None)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [token for token, session in self._sessions.items() if session.expires_at <= now]
        for token in expired:
            del self._sessions[token]
