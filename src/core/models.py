"""Core domain models.

These dataclasses are shared across the core and adapters so nothing past the
Untappd client boundary has to inspect raw API payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Checkin:
    """One Untappd check-in, as much of it as the bot cares about."""

    checkin_id: int
    timestamp: datetime
    beer_name: str
    brewery_name: str


@dataclass(frozen=True)
class UserInfo:
    """Public profile of an Untappd account."""

    username: str


@dataclass(frozen=True)
class NewCheckin:
    """A check-in seen for the first time during a sync cycle."""

    external_username: str
    checkin: Checkin
    local_user_id: Optional[str] = None


@dataclass(frozen=True)
class Association:
    """Link between a chat user id and an Untappd username."""

    local_user_id: str
    external_username: str
