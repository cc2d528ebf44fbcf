"""Server configuration read from the environment."""

import logging
import os
from pathlib import Path
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import DEFAULT_USER_ID

logger = logging.getLogger(__name__)

DEFAULT_BEARER_TOKEN = "default-token-change-me"

# env var -> field name
ENV_FIELDS = {
    "HOST": "host",
    "PORT": "port",
    "MCP_BEARER_TOKEN": "bearer_token",
    "DRAGONFLY_HOST": "redis_host",
    "DRAGONFLY_PORT": "redis_port",
    "DRAGONFLY_PASSWORD": "redis_password",
    "DRAGONFLY_DB": "redis_db",
    "DRAGONFLY_TIMEOUT": "redis_timeout",
    "MEMORY_DEFAULT_USER": "default_user_id",
    "MEMORY_AUDIT_LOG": "audit_log_path",
    "LOG_LEVEL": "log_level",
}


class ServerConfig(BaseModel):
    """Startup parameters for the memory server."""
    model_config = ConfigDict(str_strip_whitespace=True, extra='forbid', frozen=True)

    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    bearer_token: str = Field(default=DEFAULT_BEARER_TOKEN, min_length=1)

    redis_host: str = "localhost"
    redis_port: int = Field(default=6379, ge=1, le=65535)
    redis_password: Optional[str] = None
    redis_db: int = Field(default=0, ge=0)
    redis_timeout: float = Field(default=2.0, gt=0, description="Deadline for each DragonflyDB command, in seconds")

    default_user_id: str = Field(default=DEFAULT_USER_ID, min_length=1)
    search_window: int = Field(default=100, ge=1, description="Most recent memories considered per search")
    max_results: int = Field(default=10, ge=1)

    audit_log_path: Optional[Path] = None
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """Build the config from environment variables, falling back to defaults.

        Empty variables are treated as unset.
        """
        environ = os.environ if environ is None else environ
        values = {
            field: environ[name]
            for name, field in ENV_FIELDS.items()
            if environ.get(name)
        }
        config = cls(**values)
        if config.bearer_token == DEFAULT_BEARER_TOKEN:
            logger.warning("MCP_BEARER_TOKEN is not set; using the default token")
        return config
