"""
Tool dispatch: maps MCP tool names onto the storage facade.

Arguments are validated against a per-tool input model before any storage
call. Whatever happens inside, only ValidationError, MethodNotFound and
InternalError leave `ToolDispatcher.call`.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import InternalError, MethodNotFound, ValidationError
from .models import DEFAULT_USER_ID, Memory
from .storage import MemoryStorage

logger = logging.getLogger(__name__)

ADD_MEMORY = "add-memory"
SEARCH_MEMORIES = "search-memories"

USER_ID_DESCRIPTION = "User ID for memory storage. Defaults to '{default}' if not provided."


# ============================================================================
# Input Models for Tools
# ============================================================================

class AddMemoryInput(BaseModel):
    """Input for adding a new memory."""
    model_config = ConfigDict(extra='forbid', populate_by_name=True)

    content: str = Field(..., description="The content to store in memory", min_length=1)
    user_id: Optional[str] = Field(None, alias="userId", description="User ID for memory storage")


class SearchMemoriesInput(BaseModel):
    """Input for searching a user's memories."""
    model_config = ConfigDict(extra='forbid', populate_by_name=True)

    query: str = Field(..., description="The search query to find relevant memories")
    user_id: Optional[str] = Field(None, alias="userId", description="User ID for memory storage")


# ============================================================================
# Result Formatting
# ============================================================================

def format_added(memory: Memory) -> str:
    return f"Memory added successfully for user {memory.user_id}. Memory ID: {memory.id}"


def format_search_results(query: str, memories: List[Memory]) -> str:
    lines = "\n".join(
        f"{i}. [{mem.iso_timestamp}] {mem.content}"
        for i, mem in enumerate(memories, start=1)
    )
    return f'Found {len(memories)} memories for query "{query}":\n\n{lines}'


def _describe_validation_error(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(loc) for loc in item["loc"]) or "arguments"
        parts.append(f"{location}: {item['msg']}")
    return "Invalid arguments: " + "; ".join(parts)


# ============================================================================
# Dispatcher
# ============================================================================

class ToolDispatcher:
    """Routes tool calls by name and formats their text results."""

    def __init__(self, storage: MemoryStorage):
        self.storage = storage
        self._tools: Dict[str, tuple[Type[BaseModel], Callable[[Any], Awaitable[str]]]] = {
            ADD_MEMORY: (AddMemoryInput, self._add_memory),
            SEARCH_MEMORIES: (SearchMemoriesInput, self._search_memories),
        }

    async def call(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> str:
        """Run a tool and return its text result.

        Raises:
            MethodNotFound: Unknown tool name.
            ValidationError: Arguments missing or of the wrong shape.
            InternalError: Any other failure. The message stays generic; the
                original is chained and logged.
        """
        if name not in self._tools:
            raise MethodNotFound(f"Unknown tool: {name}")
        input_model, handler = self._tools[name]

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, Mapping):
            raise ValidationError("Invalid arguments: expected an object")
        try:
            params = input_model.model_validate(dict(arguments))
        except PydanticValidationError as e:
            raise ValidationError(_describe_validation_error(e)) from e

        try:
            return await handler(params)
        except (ValidationError, MethodNotFound, InternalError):
            raise
        except Exception as e:
            logger.exception(f"Tool {name} failed")
            raise InternalError("Tool execution failed") from e

    async def _add_memory(self, params: AddMemoryInput) -> str:
        memory = await self.storage.record(params.content, params.user_id)
        return format_added(memory)

    async def _search_memories(self, params: SearchMemoriesInput) -> str:
        memories = await self.storage.search(params.query, params.user_id)
        return format_search_results(params.query, memories)


def user_id_description(default_user_id: str = DEFAULT_USER_ID) -> str:
    return USER_ID_DESCRIPTION.format(default=default_user_id)
