from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from adapters.sqlite_store import SQLiteStore
from core.errors import ExternalServiceError
from core.models import Checkin, NewCheckin, UserInfo

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeFeedClient:
    """In-memory Untappd: feeds are kept newest-first like the real API."""

    def __init__(self) -> None:
        self.now = NOW
        self.feeds: dict[str, list[Checkin]] = {}
        self.users: set[str] = set()
        self.failing: set[str] = set()
        self.feed_calls: list[str] = []
        self.delay = 0.0

    def add_user(self, username: str) -> None:
        self.users.add(username)
        self.feeds.setdefault(username, [])

    def post(self, username: str, checkin_id: int, hours_ago: float = 0.0) -> Checkin:
        self.add_user(username)
        checkin = Checkin(
            checkin_id=checkin_id,
            timestamp=self.now - timedelta(hours=hours_ago),
            beer_name=f"Beer {checkin_id}",
            brewery_name="Test Brewing",
        )
        feed = self.feeds[username] + [checkin]
        self.feeds[username] = sorted(feed, key=lambda item: item.checkin_id, reverse=True)
        return checkin

    async def fetch_feed(self, username: str) -> list[Checkin]:
        self.feed_calls.append(username)
        if self.delay:
            await asyncio.sleep(self.delay)
        if username in self.failing:
            raise ExternalServiceError(f"{username} feed timed out")
        return list(self.feeds.get(username, []))

    async def fetch_user_info(self, username: str) -> Optional[UserInfo]:
        if username in self.failing:
            raise ExternalServiceError(f"{username} info timed out")
        if username not in self.users:
            return None
        return UserInfo(username=username)


class FakeDirectory:
    def __init__(self) -> None:
        self.names: dict[str, str] = {}

    async def resolve_display_name(self, local_user_id: str) -> str:
        return self.names.get(local_user_id, local_user_id)

    async def fuzzy_find(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for local_user_id, display in self.names.items():
            if display.lower() == wanted:
                return local_user_id
        return None


class FakeNotifier:
    def __init__(self) -> None:
        self.sent: list[NewCheckin] = []

    async def send(self, item: NewCheckin) -> None:
        self.sent.append(item)


@pytest.fixture
def store(tmp_path) -> SQLiteStore:
    storage = SQLiteStore(str(tmp_path / "beerscope.db"))
    storage.init_db()
    return storage


@pytest.fixture
def feed() -> FakeFeedClient:
    return FakeFeedClient()


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()
