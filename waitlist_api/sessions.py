"""Server-side login sessions keyed by an opaque cookie token."""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from .models import User

UserLoader = Callable[[str], Optional[User]]


@dataclass
class _SessionRecord:
    user_id: str
    expires_at: datetime


class SessionManager:
    """Map session tokens to stored user ids.

    Only the user id is kept as session payload; the user itself is loaded
    through ``load_user`` each time a token is resolved.
    """

    def __init__(self, load_user: UserLoader, *, ttl: timedelta = timedelta(hours=24)) -> None:
        self._load_user = load_user
        self._ttl = ttl
        self._sessions: Dict[str, _SessionRecord] = {}
        self._lock = threading.Lock()

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def cookie_max_age(self) -> int:
        return int(self._ttl.total_seconds())

    def serialize(self, user: User) -> str:
        token = secrets.token_urlsafe(32)
        now = self._now()
        record = _SessionRecord(user_id=user.id, expires_at=now + self._ttl)
        with self._lock:
            self._purge_expired(now)
            self._sessions[token] = record
        return token

    def deserialize(self, token: Optional[str]) -> Optional[User]:
        """Return the user behind ``token``, or ``None`` if there is none."""

        if not token:
            return None
        user_id = self._resolve(token)
        if user_id is None:
            return None
        user = self._load_user(user_id)
        if user is None:
            self.destroy(token)
        return user

    def destroy(self, token: Optional[str]) -> None:
        if not token:
            return
        with self._lock:
            self._sessions.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _resolve(self, token: str) -> Optional[str]:
        now = self._now()
        with self._lock:
            record = self._sessions.get(token)
            if record is None:
                return None
            if record.expires_at <= now:
                self._sessions.pop(token, None)
                return None
            record.expires_at = now + self._ttl
            return record.user_id

    def _purge_expired(self, now: datetime) -> None:
        # Caller holds ``self._lock``.
        expired = [token for token, record in self._sessions.items() if record.expires_at <= now]
        for token in expired:
            del self._sessions[token]

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = ["SessionManager", "UserLoader"]
