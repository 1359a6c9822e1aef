"""Tests for the persistence gateway."""

from datetime import timedelta

import pytest
from sqlalchemy import select, func

from roomchat import models
from roomchat.errors import StoreFailure, ValidationFailed
from roomchat.gateway import now_millis

DAY_MS = 24 * 60 * 60 * 1000


async def count_logs(gateway, room):
    async with gateway.session_factory() as db:
        return await db.scalar(
            select(func.count()).select_from(models.ConnectionLog).where(models.ConnectionLog.room == room)
        )


@pytest.mark.asyncio
async def test_record_message_returns_id(gateway):
    first = await gateway.record_message("sid1", "alice", "lobby", "hello")
    second = await gateway.record_message("sid1", "alice", "lobby", "again")
    assert second > first


@pytest.mark.asyncio
async def test_record_connection_event_rejects_unknown_action(gateway):
    with pytest.raises(ValidationFailed) as exc:
        await gateway.record_connection_event("sid1", "alice", "lobby", "kick")
    assert exc.value.field == "action"


@pytest.mark.asyncio
async def test_record_connection_event_requires_fields(gateway):
    with pytest.raises(ValidationFailed):
        await gateway.record_connection_event("", "alice", "lobby", "join")


@pytest.mark.asyncio
async def test_history_is_latest_n_ascending(gateway):
    base = now_millis()
    for i in range(10):
        await gateway.record_message("sid1", "alice", "lobby", f"m{i}", base + i)
    await gateway.record_message("sid2", "bob", "other", "elsewhere", base)

    history = await gateway.fetch_room_history("lobby", limit=3)

    assert [h.message for h in history] == ["m7", "m8", "m9"]
    assert [h.timestamp for h in history] == sorted(h.timestamp for h in history)


@pytest.mark.asyncio
async def test_history_limit_clamped(gateway):
    base = now_millis()
    for i in range(3):
        await gateway.record_message("sid1", "alice", "lobby", f"m{i}", base + i)

    assert len(await gateway.fetch_room_history("lobby", limit=0)) == 1
    assert len(await gateway.fetch_room_history("lobby", limit=5000)) == 3


@pytest.mark.asyncio
async def test_connection_logs_and_user_messages(gateway):
    base = now_millis()
    await gateway.record_connection_event("sid1", "alice", "lobby", "join", base, "10.0.0.1")
    await gateway.record_connection_event("sid1", "alice", "lobby", "leave", base + 5)
    await gateway.record_message("sid1", "alice", "lobby", "hi", base + 1)
    await gateway.record_message("sid2", "bob", "lobby", "yo", base + 2)

    logs = await gateway.fetch_connection_logs("lobby")
    assert [(l.username, l.action) for l in logs] == [("alice", "join"), ("alice", "leave")]

    messages = await gateway.fetch_user_messages("alice", "lobby")
    assert [m.message for m in messages] == ["hi"]


@pytest.mark.asyncio
async def test_statistics(gateway):
    await gateway.record_message("sid1", "alice", "lobby", "a")
    await gateway.record_message("sid2", "bob", "lobby", "b")
    await gateway.record_message("sid2", "bob", "5", "c")
    await gateway.record_connection_event("sid1", "alice", "lobby", "join")

    stats = await gateway.fetch_statistics()

    assert stats.total_messages == 3
    assert stats.total_connections == 1
    assert stats.active_room_count == 2
    assert stats.total_users == 2
    assert stats.model_dump(by_alias=True)["totalMessages"] == 3


@pytest.mark.asyncio
async def test_list_rooms_with_message_counts(gateway):
    await gateway.record_message("sid1", "alice", "lobby", "a", 100)
    await gateway.record_message("sid1", "alice", "lobby", "b", 200)
    await gateway.record_message("sid2", "bob", "5", "c", 150)

    rooms = {r.room: r for r in await gateway.list_rooms_with_message_counts()}

    assert rooms["lobby"].count == 2
    assert rooms["lobby"].first_timestamp == 100
    assert rooms["lobby"].last_timestamp == 200
    assert rooms["5"].count == 1


@pytest.mark.asyncio
async def test_purge_older_than_single_room(gateway):
    now = now_millis()
    await gateway.record_message("sid1", "alice", "5", "old", now - 40 * DAY_MS)
    await gateway.record_message("sid1", "alice", "5", "new", now - 1 * DAY_MS)
    await gateway.record_message("sid1", "alice", "lobby", "old elsewhere", now - 40 * DAY_MS)
    await gateway.record_connection_event("sid1", "alice", "5", "join", now - 40 * DAY_MS)

    deleted = await gateway.purge_older_than(timedelta(days=30), room="5")

    assert deleted == 1
    assert [h.message for h in await gateway.fetch_room_history("5")] == ["new"]
    assert len(await gateway.fetch_room_history("lobby")) == 1
    assert await count_logs(gateway, "5") == 1


@pytest.mark.asyncio
async def test_purge_older_than_all_rooms(gateway):
    now = now_millis()
    await gateway.record_message("sid1", "alice", "5", "old", now - 40 * DAY_MS)
    await gateway.record_message("sid1", "alice", "lobby", "old", now - 40 * DAY_MS)

    assert await gateway.purge_older_than(timedelta(days=30)) == 2


@pytest.mark.asyncio
async def test_purge_all_messages(gateway):
    await gateway.record_message("sid1", "alice", "tmp", "a")
    await gateway.record_message("sid1", "alice", "tmp", "b")
    await gateway.record_message("sid1", "alice", "keep", "c")

    assert await gateway.purge_all_messages("tmp") == 2
    assert await gateway.purge_all_messages("tmp") == 0
    assert len(await gateway.fetch_room_history("keep")) == 1


@pytest.mark.asyncio
async def test_store_errors_become_store_failure(gateway):
    async with gateway.engine.begin() as conn:
        await conn.exec_driver_sql("DROP TABLE chat_messages")

    with pytest.raises(StoreFailure) as exc:
        await gateway.record_message("sid1", "alice", "lobby", "hello")
    assert exc.value.operation == "record_message"


@pytest.mark.asyncio
async def test_gateway_context_manager_closes(gateway):
    async with gateway as gw:
        assert gw is gateway
