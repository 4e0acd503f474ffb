"""Telegram-side identity lookups.

Resolves chat user ids to display names (with a cache, Telegram entities are
rate limited) and finds registered users by a loosely typed name.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

LOGGER = logging.getLogger(__name__)


def display_name_of(entity) -> str:
    """Best human-readable name for a Telethon User entity."""

    first = getattr(entity, "first_name", None)
    last = getattr(entity, "last_name", None)
    if first or last:
        return " ".join(part for part in [first, last] if part)
    username = getattr(entity, "username", None)
    if username:
        return str(username)
    return str(getattr(entity, "id", None) or "unknown")


def _normalize(name: str) -> str:
    return " ".join(name.lower().lstrip("@").split())


class TelegramDirectory:
    """DirectoryPort backed by a Telethon client.

    `local_user_ids` returns the chat ids worth searching for `fuzzy_find`
    and `is_known` tells whether one chat id is registered; the app wires both
    to the identity registry.
    """

    def __init__(
        self,
        client,
        local_user_ids: Callable[[], Iterable[str]],
        is_known: Callable[[str], bool],
    ) -> None:
        self._client = client
        self._local_user_ids = local_user_ids
        self._is_known = is_known
        self._cache: dict[str, tuple[str, Optional[str]]] = {}

    async def _lookup(self, local_user_id: str) -> tuple[str, Optional[str]]:
        if local_user_id in self._cache:
            return self._cache[local_user_id]
        try:
            entity = await self._client.get_entity(int(local_user_id))
        except Exception:
            LOGGER.debug("Could not resolve Telegram user %s", local_user_id, exc_info=True)
            return local_user_id, None
        resolved = (display_name_of(entity), getattr(entity, "username", None))
        self._cache[local_user_id] = resolved
        return resolved

    async def resolve_display_name(self, local_user_id: str) -> str:
        name, _ = await self._lookup(local_user_id)
        return name

    def remember(self, local_user_id: str, entity) -> None:
        """Seed the cache from a sender; only registered users are kept."""

        if not self._is_known(local_user_id):
            return
        self._cache[local_user_id] = (display_name_of(entity), getattr(entity, "username", None))

    async def fuzzy_find(self, name: str) -> Optional[str]:
        """Find a registered chat user by @handle, full name, or name prefix."""

        wanted = _normalize(name)
        if not wanted:
            return None

        candidates: list[tuple[str, str, Optional[str]]] = []
        for local_user_id in self._local_user_ids():
            display, handle = await self._lookup(local_user_id)
            candidates.append((local_user_id, _normalize(display), (handle or "").lower()))

        for local_user_id, display, handle in candidates:
            if wanted == handle or wanted == display:
                return local_user_id

        prefixed = [local_user_id for local_user_id, display, _ in candidates if display.startswith(wanted)]
        if len(prefixed) == 1:
            return prefixed[0]

        contained = [local_user_id for local_user_id, display, _ in candidates if wanted in display]
        if len(contained) == 1:
            return contained[0]
        return None
