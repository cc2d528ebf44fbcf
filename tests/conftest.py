import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from quinn_memory import models
from quinn_memory.durable import RedisMemoryStore
from quinn_memory.storage import MemoryStorage, StorageContext


class FakeRedis:
    """Async stand-in for the few Redis commands the durable store uses.

    Commands named in `fail_on` raise a connection error; commands named in
    `hang_on` never complete.
    """

    def __init__(self):
        self.strings = {}
        self.zsets = {}
        self.fail_on = set()
        self.hang_on = set()
        self.calls = []
        self.closed = False

    async def _enter(self, command):
        self.calls.append(command)
        await asyncio.sleep(0)
        if command in self.hang_on:
            await asyncio.sleep(3600)
        if command in self.fail_on:
            raise RedisConnectionError(f"{command}: connection refused")

    def go_down(self):
        self.fail_on = {"set", "get", "mget", "zadd", "zrevrange", "ping"}

    def come_up(self):
        self.fail_on = set()
        self.hang_on = set()

    async def set(self, key, value):
        await self._enter("set")
        self.strings[key] = value
        return True

    async def get(self, key):
        await self._enter("get")
        return self.strings.get(key)

    async def mget(self, keys):
        await self._enter("mget")
        return [self.strings.get(key) for key in keys]

    async def zadd(self, key, mapping):
        await self._enter("zadd")
        zset = self.zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    async def zrevrange(self, key, start, end):
        await self._enter("zrevrange")
        zset = self.zsets.get(key, {})
        ordered = sorted(zset.items(), key=lambda item: (item[1], item[0]), reverse=True)
        members = [member for member, _ in ordered]
        return members[start:] if end == -1 else members[start:end + 1]

    async def ping(self):
        await self._enter("ping")
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def durable(fake_redis):
    return RedisMemoryStore(fake_redis, timeout=0.05)


@pytest.fixture
def context(durable):
    return StorageContext(durable=durable)


@pytest.fixture
def storage(context):
    return MemoryStorage(context)


@pytest.fixture
def clock(monkeypatch):
    """Make each new memory one second newer than the previous one."""
    state = {"now": datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)}

    def tick():
        state["now"] += timedelta(seconds=1)
        return state["now"]

    monkeypatch.setattr(models, "utc_now", tick)
    return state
