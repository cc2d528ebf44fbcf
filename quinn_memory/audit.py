"""Append-only audit trail of memory operations."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiofiles

logger = logging.getLogger(__name__)


class AuditLog:
    """Writes `timestamp | user_id | action | details` lines to a file.

    With no path configured every write is a no-op.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._lock = asyncio.Lock()

    async def write(self, user_id: str, action: str, details: str = "") -> None:
        """Record one operation. A failed write is logged and otherwise ignored.

        Args:
            user_id: Owner of the memories touched by the operation
            action: Tool name, e.g. 'add-memory'
            details: Free-form context such as the serving backend
        """
        if self.path is None:
            return

        timestamp = datetime.now(timezone.utc).isoformat()
        entry = f"{timestamp} | {user_id} | {action} | {details}\n"

        async with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(self.path, "a") as f:
                    await f.write(entry)
            except OSError as e:
                logger.error(f"Audit log write failed: {e}")
