"""Check-in sync engine.

This module is integration-agnostic. For one Untappd username it enforces a
strict order:
1) Read the watermark
2) Fetch the most recent page of the feed
3) Walk the page oldest-first, keeping ids above the watermark
4) Persist the new maximum once, after the whole page

Untappd ids grow with recency per account, so anything at or below the
watermark has already been delivered.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.errors import ExternalServiceError
from core.models import NewCheckin
from core.ports import FeedClientPort
from core.registry import IdentityRegistry
from core.watermarks import WatermarkStore

LOGGER = logging.getLogger(__name__)


class SyncEngine:
    """Fetches feeds and advances watermarks, one lock per username."""

    def __init__(
        self,
        registry: IdentityRegistry,
        watermarks: WatermarkStore,
        feed_client: FeedClientPort,
    ) -> None:
        self._registry = registry
        self._watermarks = watermarks
        self._feed_client = feed_client

    def lock_for(self, external_username: str) -> asyncio.Lock:
        """Return the lock guarding one username's watermark.

        Shared with the registry, which holds it while it writes or deletes
        that watermark.
        """

        return self._registry.locks.for_username(external_username)

    async def sync_one(
        self, external_username: str, local_user_id: Optional[str] = None
    ) -> list[NewCheckin]:
        """Return check-ins newer than the watermark, oldest first."""

        async with self.lock_for(external_username):
            return await self._sync_locked(external_username, local_user_id)

    async def _sync_locked(
        self, external_username: str, local_user_id: Optional[str]
    ) -> list[NewCheckin]:
        # StoreError from here on propagates: guessing a watermark would either
        # replay history or drop check-ins.
        last = self._watermarks.get(external_username)
        LOGGER.debug("Last checkin id for %s: %s", external_username, last)

        try:
            checkins = await self._feed_client.fetch_feed(external_username)
        except ExternalServiceError as exc:
            LOGGER.info("Feed unavailable for %s, retrying next cycle: %s", external_username, exc)
            return []

        if not checkins:
            return []

        LOGGER.debug("Got %s potential checkins for %s", len(checkins), external_username)

        fetched: list[NewCheckin] = []
        newest = last
        # The feed arrives newest-first; announce in drinking order.
        for checkin in sorted(checkins, key=lambda item: item.checkin_id):
            if checkin.checkin_id <= last:
                continue
            newest = max(newest, checkin.checkin_id)
            fetched.append(
                NewCheckin(
                    external_username=external_username,
                    checkin=checkin,
                    local_user_id=local_user_id,
                )
            )

        if newest > last:
            self._watermarks.set(external_username, newest)

        LOGGER.debug("Got %s new checkins for %s", len(fetched), external_username)
        return fetched

    async def sync_all(self) -> list[NewCheckin]:
        """Sync every registered username, concatenated in registry order."""

        fetched: list[NewCheckin] = []
        for association in self._registry.list():
            username = association.external_username
            async with self.lock_for(username):
                # Forgotten or handed to someone else since the listing.
                if self._registry.owner_of(username) != association.local_user_id:
                    LOGGER.debug("Skipping %s, association changed mid-cycle", username)
                    continue
                fetched.extend(await self._sync_locked(username, association.local_user_id))
        LOGGER.debug("Got %s total checkins", len(fetched))
        return fetched
