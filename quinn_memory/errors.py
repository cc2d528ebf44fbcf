"""
Error taxonomy for the memory service.

Only ValidationError, MethodNotFound and InternalError ever reach a tool
caller. BackendUnavailable stays inside the storage layer, where it switches
a call over to the in-memory fallback.
"""


class MemoryServiceError(Exception):
    """Base class for all memory service errors."""

    code: int = -32603

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MemoryServiceError):
    """Required field missing or of the wrong shape."""

    code = -32602


class MethodNotFound(MemoryServiceError):
    """Unknown tool name."""

    code = -32601


class InternalError(MemoryServiceError):
    """Anything unanticipated. The original exception is kept as __cause__."""

    code = -32603


class BackendUnavailable(MemoryServiceError):
    """The durable store failed, timed out, or could not be reached."""
