"""Shared fixtures for the aicli test suite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from aicli.conversation.models import Chat, FunctionCall, Message, ToolCall


class FakeEndpoint:
    """Records posted bodies and replays canned responses in order."""

    def __init__(self, *responses: str) -> None:
        self.responses = list(responses)
        self.requests: list[str] = []

    async def post(self, body: str) -> str:
        self.requests.append(body)
        return self.responses.pop(0)


def plain_response(content: str | None = None, tool_calls: list[dict[str, Any]] | None = None) -> str:
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return json.dumps({"choices": [{"index": 0, "message": message}]})


def tool_call_dict(call_id: str, name: str, arguments: str) -> dict[str, Any]:
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }


def assistant_with_call(call_id: str, name: str = "execute", arguments: str = "{}") -> Message:
    return Message(
        role="assistant",
        tool_calls=[ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))],
    )


@pytest.fixture
def system_chat() -> Chat:
    return Chat(model="test-model", messages=[Message(role="system", content="sys")])


@pytest.fixture
def project_dirs(tmp_path: Path) -> tuple[Path, Path]:
    """A config dir holding empty_chat.json and an empty chats dir."""
    config_dir = tmp_path / "data"
    chats_dir = tmp_path / "chats"
    config_dir.mkdir()
    chats_dir.mkdir()
    template = {
        "model": "",
        "messages": [{"role": "system", "content": "You are helpful."}],
        "max_tokens": 4096,
        "temperature": 1.0,
        "frequency_penalty": 0,
        "presence_penalty": 0,
        "top_p": 1.0,
        "stop": None,
    }
    (config_dir / "empty_chat.json").write_text(json.dumps(template), encoding="utf-8")
    (config_dir / "SYSTEM_PROMPT.md").write_text("Working in {{PWD}}.", encoding="utf-8")
    return config_dir, chats_dir
