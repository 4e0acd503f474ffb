"""Read-only lookups: known users and recent check-ins.

Nothing here touches watermarks; the feed is fetched directly.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from core.config import QueryConfig
from core.errors import UnknownUser
from core.models import Checkin
from core.ports import DirectoryPort, FeedClientPort
from core.registry import IdentityRegistry

USERNAME_PATTERN = re.compile(r"\w+")


def select_recent(
    checkins: Iterable[Checkin], now: datetime, config: QueryConfig
) -> List[Checkin]:
    """Pick what "last" shows.

    Everything inside the window when there are at least `minimum` of them,
    otherwise the `minimum` most recent regardless of age. Newest first.
    """

    ordered = sorted(checkins, key=lambda item: item.checkin_id, reverse=True)
    cutoff = now - timedelta(hours=config.window_hours)
    in_window = [item for item in ordered if item.timestamp >= cutoff]
    if len(in_window) >= config.minimum:
        return in_window
    return ordered[: config.minimum]


class QuerySurface:
    """Lookups backing the `known` and `last` commands."""

    def __init__(
        self,
        registry: IdentityRegistry,
        feed_client: FeedClientPort,
        directory: DirectoryPort,
        config: QueryConfig,
    ) -> None:
        self._registry = registry
        self._feed_client = feed_client
        self._directory = directory
        self._config = config

    async def known_users(self) -> List[Tuple[str, str]]:
        """Return (display name, Untappd username) for every association."""

        known: List[Tuple[str, str]] = []
        for association in self._registry.list():
            name = await self._directory.resolve_display_name(association.local_user_id)
            known.append((name, association.external_username))
        return known

    async def resolve(self, identity_ref: Optional[str], requester_id: Optional[str] = None) -> str:
        """Turn a username, a chat display name, or nothing into a username."""

        if not identity_ref:
            if requester_id is not None:
                username = self._registry.lookup(requester_id)
                if username is not None:
                    return username
            raise UnknownUser(identity_ref or "yourself")

        ref = identity_ref.strip()
        if self._registry.is_registered(ref):
            return ref

        local_user_id = await self._directory.fuzzy_find(ref)
        if local_user_id is not None:
            username = self._registry.lookup(local_user_id)
            if username is not None:
                return username

        # Any Untappd account can be looked up, registered or not.
        if USERNAME_PATTERN.fullmatch(ref):
            info = await self._feed_client.fetch_user_info(ref)
            if info is not None:
                return info.username
        raise UnknownUser(ref)

    async def recent_checkins(
        self,
        identity_ref: Optional[str],
        requester_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[str, List[Checkin]]:
        """Return the resolved username and its recent check-ins, newest first."""

        username = await self.resolve(identity_ref, requester_id)
        checkins = await self._feed_client.fetch_feed(username)
        return username, select_recent(checkins, now or datetime.now(timezone.utc), self._config)
