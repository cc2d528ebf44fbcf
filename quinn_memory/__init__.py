"""MCP server that records and searches per-user text memories."""

__version__ = "1.0.0"
