"""Memory record model and its wire encoding."""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

DEFAULT_USER_ID = "quinn_may"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def generate_memory_id() -> str:
    """Generate a memory ID: a random UUID4 rendered in base-36."""
    value = uuid.uuid4().int
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def utc_now() -> datetime:
    """Current UTC instant truncated to whole milliseconds."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp the way it is stored: ISO-8601 UTC with a Z suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Memory(BaseModel):
    """An immutable, user-scoped text record."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    content: str
    user_id: str = Field(..., alias="userId")
    timestamp: datetime

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)

    @classmethod
    def create(
        cls,
        content: Any,
        user_id: Optional[Any] = None,
        default_user_id: str = DEFAULT_USER_ID,
    ) -> "Memory":
        """Build a new memory, assigning its id and creation time.

        Raises:
            ValidationError: If content is missing, not a string or empty,
                or user_id is given but not a string.
        """
        if content is None:
            raise ValidationError("content is required")
        if not isinstance(content, str):
            raise ValidationError("content must be a string")
        if not content:
            raise ValidationError("content must not be empty")
        if user_id is None:
            user_id = default_user_id
        elif not isinstance(user_id, str):
            raise ValidationError("userId must be a string")

        return cls(
            id=generate_memory_id(),
            content=content,
            user_id=user_id,
            timestamp=utc_now(),
        )

    @classmethod
    def from_json(cls, data: str) -> "Memory":
        """Decode a stored record. Raises ValidationError on malformed data."""
        try:
            return cls.model_validate_json(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Malformed memory record: {e}") from e

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @property
    def score(self) -> int:
        """Epoch milliseconds of the creation time, used as the recency score."""
        return round(self.timestamp.timestamp() * 1000)

    @property
    def iso_timestamp(self) -> str:
        return format_timestamp(self.timestamp)
