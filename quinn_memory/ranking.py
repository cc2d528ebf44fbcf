"""Substring search over memories and recency ranking of the matches."""

from typing import Iterable, List

from .models import Memory

MAX_RESULTS = 10


def search_memories_by_query(memories: Iterable[Memory], query: str) -> List[Memory]:
    """Keep memories whose content contains the query, ignoring case."""
    query_folded = query.casefold()
    return [mem for mem in memories if query_folded in mem.content.casefold()]


def rank(candidates: Iterable[Memory], query: str, limit: int = MAX_RESULTS) -> List[Memory]:
    """Filter candidates by substring match and return the most recent first.

    Memories with equal timestamps keep their relative candidate order.
    An empty query matches everything.
    """
    results = search_memories_by_query(candidates, query)
    results = sorted(results, key=lambda mem: mem.timestamp, reverse=True)
    return results[:limit]
