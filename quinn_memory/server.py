"""
Quinn Memory MCP Server

Records text memories per user and searches them by case-insensitive
substring. Memories live in DragonflyDB; when DragonflyDB cannot be reached
a call is served from an in-process list instead, without surfacing an error.

Tools:
- add-memory: store a memory for a user
- search-memories: list a user's most recent memories containing a query

HTTP:
- POST /mcp     streamable HTTP transport, bearer token required
- GET  /health  backend status, no authentication
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Any, AsyncIterator, Dict, List, Optional

from fastmcp import FastMCP
from fastmcp.server.middleware import CallNext, MiddlewareContext
from fastmcp.server.middleware import Middleware as MCPMiddleware
from fastmcp.tools import ToolResult
from mcp import MCPError
from pydantic import Field
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from . import __version__
from .auth import BearerTokenMiddleware
from .config import ServerConfig
from .dispatch import ADD_MEMORY, SEARCH_MEMORIES, ToolDispatcher, user_id_description
from .errors import MemoryServiceError
from .storage import MemoryStorage, StorageContext

logger = logging.getLogger(__name__)

SERVER_NAME = "quinn-memory-mcp-server"
MCP_PATH = "/mcp"


class ToolDispatchMiddleware(MCPMiddleware):
    """Answers every tools/call through the ToolDispatcher.

    The dispatcher validates the raw arguments and resolves the tool name
    itself. Its errors leave as MCPError carrying the JSON-RPC code, so a
    client can tell MethodNotFound, ValidationError and InternalError apart.
    """

    def __init__(self, dispatcher: ToolDispatcher):
        self._dispatcher = dispatcher

    async def on_call_tool(self, context: MiddlewareContext[Any], call_next: CallNext[Any, ToolResult]) -> ToolResult:
        params = context.message
        try:
            text = await self._dispatcher.call(params.name, params.arguments)
        except MemoryServiceError as e:
            raise MCPError(code=e.code, message=e.message) from e
        return ToolResult(content=text)


def create_server(
    config: Optional[ServerConfig] = None,
    context: Optional[StorageContext] = None,
) -> FastMCP:
    """Build the MCP server around a storage context.

    The context is closed when the server's lifespan ends.
    """
    config = config or ServerConfig()
    context = context or StorageContext.from_config(config)
    storage = MemoryStorage(
        context,
        default_user_id=config.default_user_id,
        search_window=config.search_window,
        max_results=config.max_results,
    )
    dispatcher = ToolDispatcher(storage)

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[Dict[str, Any]]:
        logger.info(
            f"Memory storage ready (DragonflyDB at {config.redis_host}:{config.redis_port})"
        )
        try:
            yield {"storage": storage}
        finally:
            await context.close()
            logger.info("Memory storage closed")

    mcp = FastMCP(
        SERVER_NAME,
        version=__version__,
        lifespan=lifespan,
        middleware=[ToolDispatchMiddleware(dispatcher)],
    )
    user_id_help = user_id_description(config.default_user_id)

    # ========================================================================
    # MCP Tools
    #
    # These declarations publish the tool schemas. Calls arriving over MCP are
    # answered by ToolDispatchMiddleware before the bodies run.
    # ========================================================================

    @mcp.tool(
        name=ADD_MEMORY,
        description="Add a new memory for a user",
        output_schema=None,
        annotations={
            "title": "Add Memory",
            "readOnlyHint": False,
            "destructiveHint": False,
            "idempotentHint": False,
            "openWorldHint": False
        }
    )
    async def add_memory(
        content: Annotated[str, Field(description="The content to store in memory")],
        userId: Annotated[str, Field(description=user_id_help)] = config.default_user_id,
    ) -> str:
        return await dispatcher.call(ADD_MEMORY, {"content": content, "userId": userId})

    @mcp.tool(
        name=SEARCH_MEMORIES,
        description="Search through stored memories for a user",
        output_schema=None,
        annotations={
            "title": "Search Memories",
            "readOnlyHint": True,
            "destructiveHint": False,
            "idempotentHint": True,
            "openWorldHint": False
        }
    )
    async def search_memories(
        query: Annotated[str, Field(description="The search query to find relevant memories")],
        userId: Annotated[str, Field(description=user_id_help)] = config.default_user_id,
    ) -> str:
        return await dispatcher.call(SEARCH_MEMORIES, {"query": query, "userId": userId})

    # ========================================================================
    # Health
    # ========================================================================

    @mcp.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> JSONResponse:
        status = await storage.backend_status()
        return JSONResponse({
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "dragonfly": status,
            "fallback": "in-memory" if status == "unavailable" else "not needed",
            "fallback_records": len(context.fallback),
        })

    return mcp


def http_middleware(config: ServerConfig) -> List[Middleware]:
    """CORS outermost so that 401 responses still carry CORS headers."""
    return [
        Middleware(
            CORSMiddleware,
            allow_origin_regex=".*",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["Mcp-Session-Id"],
        ),
        Middleware(BearerTokenMiddleware, token=config.bearer_token),
    ]


def create_app(config: Optional[ServerConfig] = None, context: Optional[StorageContext] = None):
    """ASGI application for serving the MCP server behind an external runner."""
    config = config or ServerConfig()
    mcp = create_server(config, context)
    return mcp.http_app(path=MCP_PATH, middleware=http_middleware(config))


# ============================================================================
# Server Entry Point
# ============================================================================

def main() -> None:
    config = ServerConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    mcp = create_server(config)
    logger.info(f"Quinn Memory MCP Server starting on {config.host}:{config.port}")
    logger.info(f"Health check: http://{config.host}:{config.port}/health")
    logger.info(f"MCP endpoint: http://{config.host}:{config.port}{MCP_PATH}")

    mcp.run(
        transport="http",
        host=config.host,
        port=config.port,
        path=MCP_PATH,
        middleware=http_middleware(config),
    )


if __name__ == "__main__":
    main()
