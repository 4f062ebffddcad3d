"""Tests for the client sync coordinator."""

import asyncio

import pytest

from calorie_chat.domain.errors import SyncError
from calorie_chat.services.state_store import StateStore
from calorie_chat.services.sync import LoadOutcome, SyncCoordinator
from tests.conftest import (
    TODAY,
    FakeSnapshotClient,
    InMemorySnapshotCache,
    make_snapshot,
)

DELAY = 0.01


def _coordinator(
    client: FakeSnapshotClient, cache: InMemorySnapshotCache
) -> SyncCoordinator:
    return SyncCoordinator(
        store=StateStore(),
        client=client,
        cache=cache,
        autosave_delay=DELAY,
        today=lambda: TODAY,
    )


async def _settle() -> None:
    await asyncio.sleep(DELAY * 5)


def test_start_installs_server_snapshot(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    snapshot_client.snapshot = make_snapshot(current_date="1999-01-01")
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> LoadOutcome:
        outcome = await sync.start()
        await _settle()
        return outcome

    assert asyncio.run(scenario()) is LoadOutcome.SERVER
    assert sync.store.is_ready
    assert sync.store.snapshot == make_snapshot(current_date=TODAY)
    assert snapshot_cache.clears == 1
    assert snapshot_cache.snapshot == sync.store.snapshot
    # Installing the loaded snapshot is not an edit.
    assert snapshot_client.saved == []
    assert sync.autosave_armed


def test_start_without_saved_data_keeps_defaults(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    sync = _coordinator(snapshot_client, snapshot_cache)

    outcome = asyncio.run(sync.start())

    assert outcome is LoadOutcome.NOT_FOUND
    assert sync.store.is_ready
    assert sync.store.snapshot.custom_foods == ()
    assert snapshot_client.saved == []


def test_start_falls_back_to_cache_when_service_fails(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    snapshot_client.load_error = SyncError("connection refused")
    snapshot_cache.snapshot = make_snapshot(current_date="2023-06-01")
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> LoadOutcome:
        outcome = await sync.start()
        await _settle()
        return outcome

    assert asyncio.run(scenario()) is LoadOutcome.CACHE
    assert sync.store.snapshot == make_snapshot(current_date=TODAY)
    assert snapshot_cache.snapshot == sync.store.snapshot
    assert snapshot_client.saved == []


def test_start_uses_defaults_when_service_fails_and_no_cache(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    snapshot_client.load_error = SyncError("timeout")
    sync = _coordinator(snapshot_client, snapshot_cache)

    assert asyncio.run(sync.start()) is LoadOutcome.DEFAULT
    assert sync.store.is_ready
    assert sync.store.snapshot.daily_entries == ()


def test_start_may_only_run_once(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> None:
        await sync.start()
        await sync.start()

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())


def test_edits_before_start_are_not_saved(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> None:
        sync.store.add_consumed_food(name="apple", calories=95)
        await _settle()

    asyncio.run(scenario())

    assert snapshot_client.saved == []
    assert not sync.autosave_armed


def test_rapid_edits_coalesce_into_one_save(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> None:
        await sync.start()
        sync.store.add_consumed_food(name="apple", calories=95)
        sync.store.add_consumed_food(name="toast", calories=80)
        sync.store.update_settings(theme="dark")
        assert sync.has_pending_save
        await _settle()

    asyncio.run(scenario())

    assert len(snapshot_client.saved) == 1
    saved = snapshot_client.saved[0]
    assert saved == sync.store.snapshot
    assert saved.settings.theme == "dark"
    assert saved.daily_entries[0].total_calories == 175
    assert snapshot_cache.snapshot == saved
    assert not sync.has_pending_save


def test_failed_save_still_updates_cache(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> None:
        await sync.start()
        snapshot_client.save_error = SyncError("500 from service")
        sync.store.add_chat_message("user", "hello")
        await _settle()

    asyncio.run(scenario())

    assert snapshot_client.saved == []
    assert snapshot_cache.snapshot == sync.store.snapshot
    assert snapshot_cache.snapshot.message_count == 1


def test_flush_sends_pending_save_immediately(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    sync = _coordinator(snapshot_client, snapshot_cache)
    sync.autosave_delay = 60

    async def scenario() -> tuple[bool, bool]:
        await sync.start()
        nothing = await sync.flush()
        sync.store.set_current_date("2024-01-05")
        sent = await sync.flush()
        return nothing, sent

    assert asyncio.run(scenario()) == (False, True)
    assert len(snapshot_client.saved) == 1
    assert snapshot_client.saved[0].current_date == "2024-01-05"


def test_close_cancels_pending_save(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> None:
        await sync.start()
        sync.store.add_consumed_food(name="apple", calories=95)
        await sync.close()
        sync.store.add_consumed_food(name="pear", calories=60)
        await _settle()

    asyncio.run(scenario())

    assert snapshot_client.saved == []
    assert not sync.autosave_armed


def test_edits_during_refresh_are_kept_and_saved_afterwards(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    snapshot_client.snapshot = make_snapshot()
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> LoadOutcome:
        await sync.start()
        snapshot_client.gate = asyncio.Event()
        refresh = asyncio.create_task(sync.refresh())
        await asyncio.sleep(0)
        assert sync.is_refreshing
        sync.store.add_consumed_food(name="apple", calories=95)
        assert not sync.has_pending_save
        snapshot_client.gate.set()
        outcome = await refresh
        await _settle()
        return outcome

    assert asyncio.run(scenario()) is LoadOutcome.LOCAL
    assert not sync.is_refreshing
    assert sync.store.todays_entry().foods[-1].name == "apple"
    assert len(snapshot_client.saved) == 1
    assert snapshot_client.saved[0] == sync.store.snapshot


def test_refresh_sends_scheduled_save_before_loading(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    snapshot_client.snapshot = make_snapshot()
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> LoadOutcome:
        await sync.start()
        sync.store.add_consumed_food(name="apple", calories=95)
        assert sync.has_pending_save
        outcome = await sync.refresh()
        await _settle()
        return outcome

    assert asyncio.run(scenario()) is LoadOutcome.SERVER
    assert len(snapshot_client.saved) == 1
    assert snapshot_client.loads == 2
    assert [f.name for f in sync.store.todays_entry().foods] == ["Soup", "apple"]


def test_refresh_keeps_unsynced_edits_when_service_is_down(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> LoadOutcome:
        await sync.start()
        sync.store.add_consumed_food(name="apple", calories=95)
        snapshot_client.load_error = SyncError("connection refused")
        return await sync.refresh()

    assert asyncio.run(scenario()) is LoadOutcome.LOCAL
    assert [f.name for f in sync.store.todays_entry().foods] == ["apple"]
    assert snapshot_cache.snapshot == sync.store.snapshot


def test_refresh_skips_load_when_pending_save_fails(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    snapshot_client.snapshot = make_snapshot()
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> LoadOutcome:
        await sync.start()
        sync.store.add_consumed_food(name="apple", calories=95)
        snapshot_client.save_error = SyncError("500 from service")
        return await sync.refresh()

    assert asyncio.run(scenario()) is LoadOutcome.LOCAL
    assert snapshot_client.loads == 1
    assert sync.store.todays_entry().foods[-1].name == "apple"
    assert snapshot_cache.snapshot == sync.store.snapshot


def test_superseded_refresh_is_ignored(
    snapshot_client: FakeSnapshotClient, snapshot_cache: InMemorySnapshotCache
) -> None:
    snapshot_client.snapshot = make_snapshot()
    sync = _coordinator(snapshot_client, snapshot_cache)

    async def scenario() -> tuple[LoadOutcome, LoadOutcome]:
        await sync.start()
        snapshot_client.gate = asyncio.Event()
        first = asyncio.create_task(sync.refresh())
        await asyncio.sleep(0)
        second = asyncio.create_task(sync.refresh())
        await asyncio.sleep(0)
        snapshot_client.gate.set()
        return await first, await second

    assert asyncio.run(scenario()) == (LoadOutcome.STALE, LoadOutcome.SERVER)
    assert snapshot_client.loads == 3
