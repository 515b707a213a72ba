"""Domain models shared by the data layer and the HTTP routes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class User:
    """An account created on the first Google sign-in for an identity."""

    id: str
    google_id: str
    email: Optional[str]
    name: Optional[str]
    picture: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class WaitlistEntry:
    """A single waitlist signup."""

    email: str
    created_at: datetime


__all__ = ["User", "WaitlistEntry"]
