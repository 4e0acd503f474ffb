from __future__ import annotations

import asyncio

from adapters.notification_formatting import (
    NO_NEW_CHECKINS,
    NOT_ALLOWED,
    NOT_IMPLEMENTED,
    UNTAPPD_DOWN,
)
from bot import CommandRequest, UntappdBot
from core.announcer import Announcer
from core.config import AnnouncerConfig, QueryConfig
from core.queries import QuerySurface
from core.registry import IdentityRegistry
from core.sync import SyncEngine
from core.watermarks import WatermarkStore


class FakeResponder:
    def __init__(self) -> None:
        self.replies: list[str] = []
        self.mentions: list[str] = []

    async def reply(self, text: str) -> None:
        self.replies.append(text)

    async def reply_with_mention(self, text: str) -> None:
        self.mentions.append(text)


def _bot(store, feed, directory, notifier) -> tuple[UntappdBot, IdentityRegistry]:
    registry = IdentityRegistry(store, feed)
    watermarks = WatermarkStore(store)
    engine = SyncEngine(registry, watermarks, feed)
    announcer = Announcer(engine, watermarks, notifier, AnnouncerConfig(channel=None))
    queries = QuerySurface(registry, feed, directory, QueryConfig())
    return UntappdBot(registry, announcer, queries, directory), registry


def _say(bot: UntappdBot, text: str, sender: str = "1", admin: bool = False) -> FakeResponder:
    responder = FakeResponder()
    request = CommandRequest(sender_id=sender, sender_name=f"user{sender}", is_admin=admin)
    assert asyncio.run(bot.dispatch(text, request, responder))
    return responder


def test_unrelated_text_is_ignored(store, feed, directory, notifier) -> None:
    bot, _ = _bot(store, feed, directory, notifier)
    request = CommandRequest(sender_id="1", sender_name="one")

    assert not asyncio.run(bot.dispatch("what a lovely stout", request, FakeResponder()))
    assert not asyncio.run(bot.dispatch("untappd fetchall", request, FakeResponder()))


def test_identify_and_natural_phrase(store, feed, directory, notifier) -> None:
    bot, registry = _bot(store, feed, directory, notifier)
    feed.add_user("alice")
    feed.add_user("bob")

    assert _say(bot, "untappd identify alice", sender="1").mentions == ["ok alice"]
    assert _say(bot, "I'm bob on Untappd", sender="2").mentions == ["ok bob"]
    assert registry.lookup("1") == "alice"
    assert registry.lookup("2") == "bob"


def test_identify_conflicts_are_reported(store, feed, directory, notifier) -> None:
    bot, _ = _bot(store, feed, directory, notifier)
    feed.add_user("bob")
    feed.add_user("carol")
    _say(bot, "untappd identify bob", sender="1")

    taken = _say(bot, "untappd identify bob", sender="2")
    assert taken.mentions == ["That username is already associated with someone!"]

    again = _say(bot, "untappd identify carol", sender="1")
    assert "already associated with bob" in again.mentions[0]

    unknown = _say(bot, "untappd identify ghost", sender="3")
    assert "doesn't seem to be an Untappd user" in unknown.mentions[0]


def test_admin_commands_are_gated(store, feed, directory, notifier) -> None:
    bot, _ = _bot(store, feed, directory, notifier)

    for command in ("untappd fetch", "untappd debug nuke", "untappd forget bob", "untappd debug fetch bob"):
        assert _say(bot, command, admin=False).mentions == [NOT_ALLOWED]


def test_manual_fetch_replies_with_new_checkins(store, feed, directory, notifier) -> None:
    bot, _ = _bot(store, feed, directory, notifier)
    feed.add_user("alice")
    directory.names["1"] = "Alice"
    _say(bot, "untappd identify alice", sender="1")
    feed.post("alice", 5)

    first = _say(bot, "untappd fetch", admin=True)
    second = _say(bot, "/untappd fetch", admin=True)

    assert first.replies == ["Alice drank a Beer 5 by Test Brewing"]
    assert second.replies == [NO_NEW_CHECKINS]
    assert notifier.sent == []


def test_last_when_untappd_is_down(store, feed, directory, notifier) -> None:
    bot, _ = _bot(store, feed, directory, notifier)
    feed.add_user("alice")
    _say(bot, "untappd identify alice", sender="1")
    feed.failing.add("alice")

    assert _say(bot, "untappd last alice").replies == [UNTAPPD_DOWN]


def test_forget_self(store, feed, directory, notifier) -> None:
    bot, registry = _bot(store, feed, directory, notifier)
    feed.add_user("alice")
    _say(bot, "untappd identify alice", sender="1")

    assert _say(bot, "untappd forget", sender="1").mentions == ["You've been disassociated with Untappd"]
    assert registry.lookup("1") is None
    assert _say(bot, "untappd forget", sender="1").mentions == ["You weren't associated with Untappd."]


def test_admin_forget_by_display_name(store, feed, directory, notifier) -> None:
    bot, registry = _bot(store, feed, directory, notifier)
    feed.add_user("carol_u")
    directory.names["3"] = "Carol"
    _say(bot, "untappd identify carol_u", sender="3")

    reply = _say(bot, "untappd forget Carol", sender="9", admin=True)

    assert "carol_u" in reply.mentions[0]
    assert registry.lookup("3") is None

    missing = _say(bot, "untappd forget Zelda", sender="9", admin=True)
    assert missing.mentions == ["I don't know who Zelda is."]


def test_debug_fetch_and_nuke(store, feed, directory, notifier) -> None:
    bot, registry = _bot(store, feed, directory, notifier)
    feed.post("alice", 1)
    feed.post("alice", 2)
    directory.names["1"] = "Alice"
    _say(bot, "untappd identify alice", sender="1")

    replay = _say(bot, "untappd debug fetch alice", admin=True)
    assert replay.replies == [
        "Alice drank a Beer 1 by Test Brewing\nAlice drank a Beer 2 by Test Brewing"
    ]

    not_registered = _say(bot, "untappd debug fetch nobody", admin=True)
    assert not_registered.mentions == ["nobody isn't associated with Untappd."]

    assert _say(bot, "untappd debug nuke", admin=True).mentions == ["Forgot 1 Untappd users."]
    assert list(registry.list()) == []


def test_known_and_last(store, feed, directory, notifier) -> None:
    bot, _ = _bot(store, feed, directory, notifier)
    assert _say(bot, "untappd known").replies == ["Nobody has told me their Untappd username yet."]

    feed.post("alice", 1)
    directory.names["1"] = "Alice"
    _say(bot, "untappd identify alice", sender="1")

    assert _say(bot, "untappd known").replies == ["I know these Untappd users:\nAlice is alice"]

    last = _say(bot, "untappd last", sender="1")
    assert last.replies[0].startswith("Recent check-ins for alice:")
    assert "Beer 1 by Test Brewing" in last.replies[0]


def test_checkin_is_not_implemented(store, feed, directory, notifier) -> None:
    bot, _ = _bot(store, feed, directory, notifier)

    assert _say(bot, "untappd check in Pliny the Elder").mentions == [NOT_IMPLEMENTED]
    assert _say(bot, "untappd checkin Heady Topper").mentions == [NOT_IMPLEMENTED]
