"""
Durable memory storage on a Redis-compatible server (DragonflyDB in production).

Layout:
    memory:<userId>:<id>   JSON record
    memories:<userId>      sorted set, id -> epoch-millisecond creation time
"""

import asyncio
import logging
from typing import Any, Awaitable, List, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .errors import BackendUnavailable, ValidationError
from .models import Memory

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 2.0


def record_key(user_id: str, memory_id: str) -> str:
    return f"memory:{user_id}:{memory_id}"


def index_key(user_id: str) -> str:
    return f"memories:{user_id}"


class RedisMemoryStore:
    """Reads and writes memories through a shared async Redis client.

    Every command runs under its own deadline. Timeouts and connection or
    command failures surface as BackendUnavailable; nothing is retried here.
    """

    def __init__(self, client: Redis, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self._client = client
        self._timeout = timeout

    @property
    def client(self) -> Redis:
        return self._client

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise BackendUnavailable(f"{operation} timed out after {self._timeout}s") from e
        except (RedisError, OSError) as e:
            raise BackendUnavailable(f"{operation} failed: {e}") from e

    async def put(self, memory: Memory) -> None:
        """Store the record, then add its id to the user's recency index.

        The two writes are not atomic. If the index write fails the record
        stays stored but is invisible to list().
        """
        key = record_key(memory.user_id, memory.id)
        await self._call("SET", self._client.set(key, memory.to_json()))
        await self._call(
            "ZADD",
            self._client.zadd(index_key(memory.user_id), {memory.id: memory.score}),
        )
        logger.info(f"Memory stored in DragonflyDB: {key}")

    async def list(self, user_id: str, limit: int = 100) -> List[Memory]:
        """Return up to `limit` of the user's most recent memories, newest first.

        Ids whose record is missing or unreadable are skipped.
        """
        if limit <= 0:
            return []

        ids = await self._call(
            "ZREVRANGE", self._client.zrevrange(index_key(user_id), 0, limit - 1)
        )
        if not ids:
            return []

        keys = [record_key(user_id, _as_text(memory_id)) for memory_id in ids]
        payloads = await self._call("MGET", self._client.mget(keys))

        memories = []
        for key, payload in zip(keys, payloads):
            if payload is None:
                continue
            try:
                memories.append(Memory.from_json(_as_text(payload)))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable memory record {key}: {e}")
        return memories

    async def ping(self) -> bool:
        """True if the server answers a PING within the deadline."""
        try:
            await self._call("PING", self._client.ping())
            return True
        except BackendUnavailable as e:
            logger.warning(f"DragonflyDB health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


def create_redis_client(
    host: str,
    port: int,
    password: Optional[str] = None,
    db: int = 0,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Redis:
    """Build the shared client. Redis connects lazily on the first command."""
    return Redis(
        host=host,
        port=port,
        password=password,
        db=db,
        decode_responses=True,
        socket_connect_timeout=timeout,
        socket_timeout=timeout,
    )
