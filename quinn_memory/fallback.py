"""Process-local memory storage used while the durable store is unreachable."""

from typing import List

from .models import Memory


class InMemoryMemoryStore:
    """Append-only list of memories, lost when the process exits.

    Methods never await, so concurrent tasks cannot interleave mid-update.
    """

    def __init__(self) -> None:
        self._memories: List[Memory] = []

    def append(self, memory: Memory) -> None:
        self._memories.append(memory)

    def query(self, user_id: str) -> List[Memory]:
        """All of the user's memories, oldest first."""
        return [m for m in self._memories if m.user_id == user_id]

    def __len__(self) -> int:
        return len(self._memories)
