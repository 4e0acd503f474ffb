"""Ports (interfaces) used by the core.

Ports define the minimal contracts for storage, Untappd and chat adapters so
that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import ContextManager, Iterable, Optional, Protocol

from core.models import Checkin, NewCheckin, UserInfo


class KeyValueOps(Protocol):
    """Associative store operations, also available inside a transaction."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def set_add(self, set_key: str, member: str) -> None:
        ...

    def set_remove(self, set_key: str, member: str) -> None:
        ...

    def set_members(self, set_key: str) -> Iterable[str]:
        ...

    def set_contains(self, set_key: str, member: str) -> bool:
        ...


class KeyValueStorePort(KeyValueOps, Protocol):
    """Persistent associative store; `transaction()` groups several writes."""

    def transaction(self) -> ContextManager[KeyValueOps]:
        ...


class FeedClientPort(Protocol):
    """Untappd operations required by the core."""

    async def fetch_feed(self, username: str) -> list[Checkin]:
        """Return the most recent page of check-ins, newest first."""
        ...

    async def fetch_user_info(self, username: str) -> Optional[UserInfo]:
        """Return the profile, or None when the user does not exist."""
        ...


class NotifierPort(Protocol):
    """Announcement sink for newly observed check-ins."""

    async def send(self, item: NewCheckin) -> None:
        ...


class DirectoryPort(Protocol):
    """Chat-side identity lookups."""

    async def resolve_display_name(self, local_user_id: str) -> str:
        ...

    async def fuzzy_find(self, name: str) -> Optional[str]:
        ...
