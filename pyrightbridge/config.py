"""Startup configuration for the Pyright WebSocket Bridge."""

import os
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_WORKSPACE_NAME = "jesse-ai"
DEFAULT_PATH = "/lsp"


class BridgeConfig(BaseModel):
    """Immutable configuration handed to every session.

    The execution root and reference root must be known before any
    connection is accepted. The formatter path is optional: without it,
    formatting requests are forwarded to the backend like any other request.
    """

    model_config = ConfigDict(frozen=True)

    port: int = Field(ge=1, le=65535)
    host: str = "localhost"
    path: str = DEFAULT_PATH
    execution_root: str
    reference_root: str
    formatter_path: Optional[str] = None
    formatter_timeout: float = Field(default=30.0, gt=0)
    backend_command: Optional[List[str]] = None
    workspace_name: str = DEFAULT_WORKSPACE_NAME
    config_template: Optional[str] = None
    shutdown_timeout: float = Field(default=5.0, gt=0)
    max_message_size: Optional[int] = 16 * 1024 * 1024

    @field_validator("execution_root")
    @classmethod
    def _check_execution_root(cls, value: str) -> str:
        if not os.path.isabs(value):
            raise ValueError(f"Execution root must be an absolute path: {value}")
        if not os.path.isdir(value):
            raise ValueError(f"Execution root is not a directory: {value}")
        return os.path.normpath(value)

    @field_validator("reference_root")
    @classmethod
    def _check_reference_root(cls, value: str) -> str:
        if not value:
            raise ValueError("Reference root is required")
        return value

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        if not value.startswith("/"):
            return f"/{value}"
        return value

    @field_validator("backend_command")
    @classmethod
    def _check_backend_command(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is not None and not value:
            raise ValueError("Backend command must not be empty")
        return value
