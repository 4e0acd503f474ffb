from __future__ import annotations

import asyncio

import pytest

from adapters.sqlite_store import SQLiteStore
from core.errors import StoreError
from core.registry import IdentityRegistry
from core.sync import SyncEngine
from core.watermarks import WatermarkStore


def _engine(store, feed) -> tuple[SyncEngine, IdentityRegistry, WatermarkStore]:
    registry = IdentityRegistry(store, feed)
    watermarks = WatermarkStore(store)
    return SyncEngine(registry, watermarks, feed), registry, watermarks


def _ids(fetched) -> list[int]:
    return [item.checkin.checkin_id for item in fetched]


def test_only_ids_above_watermark_in_chronological_order(store, feed) -> None:
    engine, _, watermarks = _engine(store, feed)
    for checkin_id in (98, 101, 103):
        feed.post("alice", checkin_id)
    watermarks.set("alice", 100)

    fetched = asyncio.run(engine.sync_one("alice"))

    assert _ids(fetched) == [101, 103]
    assert all(item.external_username == "alice" for item in fetched)
    assert watermarks.get("alice") == 103


def test_second_sync_without_new_data_is_empty(store, feed) -> None:
    engine, _, watermarks = _engine(store, feed)
    feed.post("alice", 5)
    feed.post("alice", 6)

    assert _ids(asyncio.run(engine.sync_one("alice"))) == [5, 6]
    assert asyncio.run(engine.sync_one("alice")) == []
    assert watermarks.get("alice") == 6


def test_each_checkin_delivered_exactly_once_across_cycles(store, feed) -> None:
    engine, _, _ = _engine(store, feed)
    delivered: list[int] = []

    for batch in ([1, 2], [], [3], [4, 5, 6], [], [7]):
        for checkin_id in batch:
            feed.post("bob", checkin_id)
        delivered.extend(_ids(asyncio.run(engine.sync_one("bob"))))

    assert delivered == [1, 2, 3, 4, 5, 6, 7]


def test_feed_page_sliding_past_old_items(store, feed) -> None:
    engine, _, watermarks = _engine(store, feed)
    for checkin_id in (10, 11, 12):
        feed.post("bob", checkin_id)
    asyncio.run(engine.sync_one("bob"))

    # The API only returns the latest page; older entries fall off it.
    feed.feeds["bob"] = feed.feeds["bob"][:1]
    feed.post("bob", 13)

    assert _ids(asyncio.run(engine.sync_one("bob"))) == [13]
    assert watermarks.get("bob") == 13


def test_empty_feed_leaves_watermark_alone(store, feed) -> None:
    engine, _, watermarks = _engine(store, feed)
    feed.add_user("carol")
    watermarks.set("carol", 42)

    assert asyncio.run(engine.sync_one("carol")) == []
    assert watermarks.get("carol") == 42


def test_transient_failure_is_nothing_new(store, feed) -> None:
    engine, _, watermarks = _engine(store, feed)
    feed.post("carol", 50)
    watermarks.set("carol", 40)
    feed.failing.add("carol")

    assert asyncio.run(engine.sync_one("carol")) == []
    assert watermarks.get("carol") == 40

    feed.failing.clear()
    assert _ids(asyncio.run(engine.sync_one("carol"))) == [50]


def test_watermark_never_regresses(store, feed) -> None:
    engine, _, watermarks = _engine(store, feed)
    feed.post("dave", 3)
    watermarks.set("dave", 9)

    assert asyncio.run(engine.sync_one("dave")) == []
    assert watermarks.get("dave") == 9


def test_sync_all_isolates_failing_users(store, feed) -> None:
    engine, registry, _ = _engine(store, feed)
    for name in ("alice", "bob", "carol"):
        feed.add_user(name)
    asyncio.run(registry.associate("1", "alice"))
    asyncio.run(registry.associate("2", "bob"))
    asyncio.run(registry.associate("3", "carol"))
    feed.post("alice", 1)
    feed.post("bob", 2)
    feed.post("carol", 3)
    feed.failing.add("bob")

    fetched = asyncio.run(engine.sync_all())

    assert sorted(_ids(fetched)) == [1, 3]
    by_user = {item.external_username: item.local_user_id for item in fetched}
    assert by_user == {"alice": "1", "carol": "3"}


def test_sync_all_with_nobody_registered(store, feed) -> None:
    engine, _, _ = _engine(store, feed)

    assert asyncio.run(engine.sync_all()) == []


def test_overlapping_syncs_do_not_double_deliver(store, feed) -> None:
    feed.post("erin", 1)
    feed.post("erin", 2)
    feed.delay = 0.01

    async def scenario():
        engine, _, _ = _engine(store, feed)
        return await asyncio.gather(engine.sync_one("erin"), engine.sync_one("erin"))

    first, second = asyncio.run(scenario())

    assert sorted(_ids(first) + _ids(second)) == [1, 2]


def test_store_failure_aborts_instead_of_guessing(tmp_path, feed) -> None:
    broken = SQLiteStore(str(tmp_path / "missing" / "beerscope.db"))
    engine, _, _ = _engine(broken, feed)
    feed.post("alice", 1)

    with pytest.raises(StoreError):
        asyncio.run(engine.sync_one("alice"))
    assert feed.feed_calls == []


def test_reassociation_during_sync_keeps_newest_watermark(store, feed) -> None:
    engine, registry, watermarks = _engine(store, feed)
    for checkin_id in (98, 101, 103):
        feed.post("alice", checkin_id)

    async def scenario() -> list[int]:
        await registry.associate("1", "alice")
        watermarks.set("alice", 100)
        feed.delay = 0.05
        in_flight = asyncio.create_task(engine.sync_one("alice", "1"))
        await asyncio.sleep(0.01)

        feed.delay = 0.0
        await registry.forget("1")
        feed.post("alice", 105)
        await registry.associate("2", "alice")
        return _ids(await in_flight)

    assert asyncio.run(scenario()) == [101, 103]
    assert watermarks.get("alice") == 105
    assert registry.owner_of("alice") == "2"


def test_forget_during_sync_leaves_no_watermark_behind(store, feed) -> None:
    engine, registry, _ = _engine(store, feed)
    feed.post("alice", 1)

    async def scenario() -> None:
        await registry.associate("1", "alice")
        feed.post("alice", 2)
        feed.delay = 0.05
        in_flight = asyncio.create_task(engine.sync_one("alice", "1"))
        await asyncio.sleep(0.01)
        await registry.forget("1")
        await in_flight

    asyncio.run(scenario())

    assert store.get("untappd:last:alice") is None
    assert list(registry.list()) == []


def test_sync_all_does_not_resurrect_forgotten_watermark(store, feed) -> None:
    engine, registry, _ = _engine(store, feed)
    feed.post("alice", 1)
    feed.post("bob", 1)

    async def scenario() -> None:
        await registry.associate("1", "alice")
        await registry.associate("2", "bob")
        feed.post("alice", 2)
        feed.post("bob", 2)
        feed.delay = 0.05
        cycle = asyncio.create_task(engine.sync_all())
        await asyncio.sleep(0.01)
        await registry.forget("2")
        await cycle

    asyncio.run(scenario())

    assert store.get("untappd:last:bob") is None
    assert store.get("untappd:last:alice") == "2"
    assert [pair.external_username for pair in registry.list()] == ["alice"]
