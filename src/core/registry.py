"""Identity registry: chat user ids <-> Untappd usernames.

The mapping is a partial bijection. Both directions live in the associative
store together with a set of every registered username, and all mutations
run under one lock so the uniqueness check and the writes are atomic with
respect to each other. Watermark writes additionally hold the username's
lock from `UsernameLocks`, the same one the sync engine takes.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Iterator, Optional

from core.errors import (
    AlreadyAssociated,
    AlreadyAssociatedSelf,
    NotAssociated,
    UnknownExternalUser,
    UsernameTaken,
)
from core.keys import USERNAMES_SET, forward_key, reverse_key
from core.locks import UsernameLocks
from core.models import Association
from core.ports import FeedClientPort, KeyValueStorePort
from core.watermarks import WatermarkStore

LOGGER = logging.getLogger(__name__)


class IdentityRegistry:
    """Owns association records; the only writer of forward/reverse keys.

    `feed_client` may be left out for read-only use (listing, lookups);
    `associate` needs it to validate usernames.
    """

    def __init__(
        self,
        store: KeyValueStorePort,
        feed_client: Optional[FeedClientPort] = None,
        locks: Optional[UsernameLocks] = None,
    ) -> None:
        self._store = store
        self._feed_client = feed_client
        self._lock = asyncio.Lock()
        self.locks = locks or UsernameLocks()

    def lookup(self, local_user_id: str) -> Optional[str]:
        """Return the Untappd username of a chat user, if associated."""

        return self._store.get(forward_key(local_user_id))

    def owner_of(self, external_username: str) -> Optional[str]:
        """Return the chat user id owning an Untappd username, if any."""

        return self._store.get(reverse_key(external_username))

    def is_registered(self, external_username: str) -> bool:
        return self._store.set_contains(USERNAMES_SET, external_username)

    def list(self) -> Iterator[Association]:
        """Yield every association; order is unspecified."""

        for username in list(self._store.set_members(USERNAMES_SET)):
            local_user_id = self.owner_of(username)
            if local_user_id is None:
                # Member without a reverse record; nothing to pair it with.
                LOGGER.debug("Skipping orphaned username %s", username)
                continue
            yield Association(local_user_id=local_user_id, external_username=username)

    async def associate(self, local_user_id: str, external_username: str) -> Association:
        """Link a chat user to an Untappd account.

        Raises AlreadyAssociatedSelf, AlreadyAssociated, UsernameTaken or
        UnknownExternalUser. ExternalServiceError propagates untouched when
        Untappd cannot be reached, and nothing is written in that case.
        """

        if self._feed_client is None:
            raise RuntimeError("associate needs an Untappd client")

        async with self._lock:
            current = self.lookup(local_user_id)
            if current == external_username:
                raise AlreadyAssociatedSelf(external_username)
            if current is not None:
                raise AlreadyAssociated(external_username, current)

            owner = self.owner_of(external_username)
            if owner is not None:
                raise UsernameTaken(external_username)

            info = await self._feed_client.fetch_user_info(external_username)
            if info is None:
                raise UnknownExternalUser(external_username)

            async with self.locks.for_username(external_username):
                # Start from the newest visible check-in so history is not
                # announced as if it were new.
                feed = await self._feed_client.fetch_feed(external_username)
                newest = max((checkin.checkin_id for checkin in feed), default=0)

                with self._store.transaction() as tx:
                    tx.set(forward_key(local_user_id), external_username)
                    tx.set(reverse_key(external_username), local_user_id)
                    tx.set_add(USERNAMES_SET, external_username)
                    WatermarkStore(tx).set(external_username, newest)

        LOGGER.info(
            "Associated %s with %s (watermark %s)", local_user_id, external_username, newest
        )
        return Association(local_user_id=local_user_id, external_username=external_username)

    async def forget(self, local_user_id: str) -> str:
        """Remove the caller's association and return the released username."""

        async with self._lock:
            username = self.lookup(local_user_id)
            if username is None:
                raise NotAssociated(local_user_id)
            async with self.locks.for_username(username):
                self._remove(local_user_id, username)
        return username

    async def forget_by_username(self, external_username: str) -> str:
        """Remove an association by Untappd username; returns the local id."""

        async with self._lock:
            local_user_id = self.owner_of(external_username)
            if local_user_id is None:
                raise NotAssociated(external_username)
            async with self.locks.for_username(external_username):
                self._remove(local_user_id, external_username)
        return local_user_id

    async def reset_all(self) -> int:
        """Drop every association and watermark. Irreversible."""

        async with self._lock:
            usernames = sorted(self._store.set_members(USERNAMES_SET))
            async with contextlib.AsyncExitStack() as stack:
                for username in usernames:
                    await stack.enter_async_context(self.locks.for_username(username))
                with self._store.transaction() as tx:
                    for username in usernames:
                        local_user_id = tx.get(reverse_key(username))
                        if local_user_id is not None:
                            tx.delete(forward_key(local_user_id))
                        tx.delete(reverse_key(username))
                        WatermarkStore(tx).delete(username)
                        tx.set_remove(USERNAMES_SET, username)
        LOGGER.warning("Registry reset: removed %s associations", len(usernames))
        return len(usernames)

    def _remove(self, local_user_id: str, external_username: str) -> None:
        with self._store.transaction() as tx:
            tx.delete(forward_key(local_user_id))
            tx.delete(reverse_key(external_username))
            WatermarkStore(tx).delete(external_username)
            tx.set_remove(USERNAMES_SET, external_username)
        LOGGER.info("Forgot association %s -> %s", local_user_id, external_username)
