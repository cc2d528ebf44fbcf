"""Tests for the DragonflyDB-backed store."""

import json

import pytest

from quinn_memory.durable import index_key, record_key
from quinn_memory.errors import BackendUnavailable
from quinn_memory.models import Memory


@pytest.mark.asyncio
async def test_put_writes_record_and_index(durable, fake_redis):
    memory = Memory.create("hello", "u1")
    await durable.put(memory)

    stored = json.loads(fake_redis.strings[f"memory:u1:{memory.id}"])
    assert stored["content"] == "hello"
    assert stored["userId"] == "u1"
    assert fake_redis.zsets["memories:u1"] == {memory.id: memory.score}
    assert fake_redis.calls == ["set", "zadd"]


@pytest.mark.asyncio
async def test_list_newest_first(durable, clock):
    first = Memory.create("one", "u1")
    second = Memory.create("two", "u1")
    await durable.put(first)
    await durable.put(second)

    memories = await durable.list("u1", 100)
    assert [m.id for m in memories] == [second.id, first.id]
    assert memories[0].timestamp == second.timestamp


@pytest.mark.asyncio
async def test_list_respects_limit(durable, clock):
    for i in range(5):
        await durable.put(Memory.create(f"m{i}", "u1"))

    memories = await durable.list("u1", 3)
    assert [m.content for m in memories] == ["m4", "m3", "m2"]
    assert await durable.list("u1", 0) == []


@pytest.mark.asyncio
async def test_list_unknown_user(durable, fake_redis):
    assert await durable.list("nobody", 100) == []
    assert "mget" not in fake_redis.calls


@pytest.mark.asyncio
async def test_list_skips_missing_and_unreadable_records(durable, fake_redis, clock):
    kept = Memory.create("kept", "u1")
    await durable.put(kept)
    fake_redis.zsets[index_key("u1")]["ghost"] = kept.score + 10
    fake_redis.zsets[index_key("u1")]["broken"] = kept.score + 20
    fake_redis.strings[record_key("u1", "broken")] = "{not json"

    memories = await durable.list("u1", 100)
    assert [m.id for m in memories] == [kept.id]


@pytest.mark.asyncio
async def test_connection_error_becomes_backend_unavailable(durable, fake_redis):
    fake_redis.fail_on = {"set"}
    with pytest.raises(BackendUnavailable) as exc_info:
        await durable.put(Memory.create("hello", "u1"))
    assert exc_info.value.__cause__ is not None


@pytest.mark.asyncio
async def test_hung_command_times_out(durable, fake_redis):
    fake_redis.hang_on = {"zrevrange"}
    with pytest.raises(BackendUnavailable, match="timed out"):
        await durable.list("u1", 100)


@pytest.mark.asyncio
async def test_index_failure_leaves_record_unlisted(durable, fake_redis):
    memory = Memory.create("half written", "u1")
    fake_redis.fail_on = {"zadd"}

    with pytest.raises(BackendUnavailable):
        await durable.put(memory)

    fake_redis.come_up()
    assert record_key("u1", memory.id) in fake_redis.strings
    assert await durable.list("u1", 100) == []


@pytest.mark.asyncio
async def test_ping(durable, fake_redis):
    assert await durable.ping() is True
    fake_redis.fail_on = {"ping"}
    assert await durable.ping() is False
    fake_redis.fail_on = set()
    fake_redis.hang_on = {"ping"}
    assert await durable.ping() is False


@pytest.mark.asyncio
async def test_close(durable, fake_redis):
    await durable.close()
    assert fake_redis.closed is True
