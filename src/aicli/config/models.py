"""Pydantic v2 models for aicli.yaml configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from aicli.tools.buffer import DEFAULT_MAX_LINE_LEN, DEFAULT_MAX_LINES
from aicli.tools.executor import DEFAULT_GRACE, DEFAULT_TIMEOUT


class ExecutorConfig(BaseModel):
    """Limits applied to the ``execute`` tool."""

    model_config = ConfigDict(extra="forbid")

    timeout: float = Field(
        default=DEFAULT_TIMEOUT,
        gt=0,
        description="Seconds a command may run before it is terminated",
    )
    grace: float = Field(
        default=DEFAULT_GRACE,
        ge=0,
        description="Seconds between SIGTERM and SIGKILL",
    )
    max_lines: int = Field(
        default=DEFAULT_MAX_LINES,
        ge=1,
        description="Output lines kept; older lines are dropped",
    )
    max_line_len: int = Field(
        default=DEFAULT_MAX_LINE_LEN,
        ge=1,
        description="Characters kept per output line",
    )


class AicliConfig(BaseModel):
    """Top-level aicli.yaml configuration. Every field is optional."""

    model_config = ConfigDict(extra="forbid")

    config_dir: str = Field(
        default="data",
        description="Directory holding empty_chat.json and SYSTEM_PROMPT.md",
    )
    chats_dir: str = Field(
        default="chats",
        description="Directory holding one <chat_id>.json per chat",
    )
    todo_db: str = Field(
        default="todolist.sqlite3",
        description="SQLite file backing the todo tools",
    )
    write_req_resp: bool = Field(
        default=False,
        description="Capture last_request.json / last_response.json",
    )
    request_timeout: float = Field(
        default=600.0,
        gt=0,
        description="HTTP client timeout in seconds",
    )
    max_tool_rounds: int = Field(
        default=20,
        ge=1,
        description="Upper bound on tool round-trips for `chat --run-tools`",
    )
    executor: ExecutorConfig = Field(
        default_factory=ExecutorConfig,
        description="Command executor limits",
    )
