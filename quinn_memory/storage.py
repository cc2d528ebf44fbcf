"""
Storage facade over the durable store and the in-memory fallback.

Each call tries DragonflyDB first and drops to the fallback only when that
particular call fails. There is no sticky failover: the next call tries the
durable store again.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .audit import AuditLog
from .config import ServerConfig
from .durable import RedisMemoryStore, create_redis_client
from .errors import BackendUnavailable, ValidationError
from .fallback import InMemoryMemoryStore
from .models import DEFAULT_USER_ID, Memory
from .ranking import MAX_RESULTS, rank

logger = logging.getLogger(__name__)

DURABLE_BACKEND = "dragonfly"
FALLBACK_BACKEND = "in-memory"


@dataclass
class StorageContext:
    """Process-wide storage state: the shared client handle and the fallback list.

    Created at server start and closed at server stop.
    """

    durable: RedisMemoryStore
    fallback: InMemoryMemoryStore = field(default_factory=InMemoryMemoryStore)
    audit: AuditLog = field(default_factory=AuditLog)

    @classmethod
    def from_config(cls, config: ServerConfig) -> "StorageContext":
        client = create_redis_client(
            host=config.redis_host,
            port=config.redis_port,
            password=config.redis_password,
            db=config.redis_db,
            timeout=config.redis_timeout,
        )
        return cls(
            durable=RedisMemoryStore(client, timeout=config.redis_timeout),
            audit=AuditLog(config.audit_log_path),
        )

    async def close(self) -> None:
        await self.durable.close()


class MemoryStorage:
    """Single entry point for recording and searching memories."""

    def __init__(
        self,
        context: StorageContext,
        default_user_id: str = DEFAULT_USER_ID,
        search_window: int = 100,
        max_results: int = MAX_RESULTS,
    ):
        self.context = context
        self.default_user_id = default_user_id
        self.search_window = search_window
        self.max_results = max_results

    async def record(self, content: Any, user_id: Optional[str] = None) -> Memory:
        """Create a memory and store it, degrading silently to the fallback.

        Raises:
            ValidationError: If content is missing or not a non-empty string.
                Nothing is stored in that case.
        """
        memory = Memory.create(content, user_id, default_user_id=self.default_user_id)

        try:
            await self.context.durable.put(memory)
            backend = DURABLE_BACKEND
        except BackendUnavailable as e:
            logger.warning(f"DragonflyDB error, using fallback: {e}")
            self.context.fallback.append(memory)
            backend = FALLBACK_BACKEND

        await self.context.audit.write(
            memory.user_id, "add-memory", f"backend={backend} | mem_id={memory.id}"
        )
        return memory

    async def search(self, query: Any, user_id: Optional[str] = None) -> List[Memory]:
        """Return the user's most recent memories containing `query`.

        Raises:
            ValidationError: If query is not a string.
        """
        if not isinstance(query, str):
            raise ValidationError("query must be a string")
        if user_id is None:
            user_id = self.default_user_id
        elif not isinstance(user_id, str):
            raise ValidationError("userId must be a string")

        try:
            candidates = await self.context.durable.list(user_id, self.search_window)
            backend = DURABLE_BACKEND
        except BackendUnavailable as e:
            logger.warning(f"DragonflyDB error, using fallback: {e}")
            candidates = self.context.fallback.query(user_id)
            backend = FALLBACK_BACKEND

        results = rank(candidates, query, limit=self.max_results)
        logger.info(f"Found {len(results)} memories in {backend} for query: {query}")

        await self.context.audit.write(
            user_id, "search-memories", f"backend={backend} | results={len(results)}"
        )
        return results

    async def backend_status(self) -> str:
        """'connected' or 'unavailable', from a PING. Mutates nothing."""
        if await self.context.durable.ping():
            return "connected"
        return "unavailable"
