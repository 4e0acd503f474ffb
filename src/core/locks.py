"""Per-username locks shared by the registry and the sync engine.

Whoever writes or deletes a username's watermark holds that username's lock,
so a sync never finishes its read-fetch-advance on a stale watermark.
"""

from __future__ import annotations

import asyncio


class UsernameLocks:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def for_username(self, external_username: str) -> asyncio.Lock:
        lock = self._locks.get(external_username)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[external_username] = lock
        return lock
