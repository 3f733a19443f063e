"""Tests for chat document and message models."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from aicli.conversation.models import (
    Chat,
    FunctionCall,
    ImagePart,
    ImageUrl,
    Message,
    TextPart,
    ToolCall,
    content_text,
)


def _call(call_id: str = "call_1", name: str = "execute", arguments: str = "{}") -> ToolCall:
    return ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))


class TestMessageRoles:
    def test_assistant_may_carry_tool_calls(self) -> None:
        msg = Message(role="assistant", tool_calls=[_call()])
        assert msg.tool_calls is not None

    def test_user_may_not_carry_tool_calls(self) -> None:
        with pytest.raises(ValidationError, match="Only assistant"):
            Message(role="user", content="x", tool_calls=[_call()])

    def test_only_tool_messages_carry_tool_call_id(self) -> None:
        with pytest.raises(ValidationError, match="Only tool"):
            Message(role="user", content="x", tool_call_id="call_1")

    def test_tool_response_constructor(self) -> None:
        msg = Message.tool_response(name="execute", tool_call_id="call_1", content="ok")
        assert msg.role == "tool"
        assert msg.name == "execute"
        assert msg.tool_call_id == "call_1"

    def test_unknown_role_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Message(role="robot", content="x")  # type: ignore[arg-type]


class TestContent:
    def test_plain_string(self) -> None:
        msg = Message.model_validate({"role": "user", "content": "hello"})
        assert msg.content == "hello"

    def test_multi_part_parsed_by_type(self) -> None:
        msg = Message.model_validate(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "look:"},
                    {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
                ],
            }
        )
        assert isinstance(msg.content, list)
        assert isinstance(msg.content[0], TextPart)
        assert isinstance(msg.content[1], ImagePart)

    def test_single_text_part_keeps_array_shape(self) -> None:
        raw = {"role": "user", "content": [{"type": "text", "text": "hi"}]}
        wire = Message.model_validate(raw).to_wire()
        assert wire["content"] == [{"type": "text", "text": "hi"}]

    def test_unknown_part_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Message.model_validate(
                {"role": "user", "content": [{"type": "audio", "data": "..."}]}
            )

    def test_content_text_flattens_parts(self) -> None:
        parts = [
            TextPart(text="see "),
            ImagePart(image_url=ImageUrl(url="12345")),
        ]
        assert content_text(parts) == "see Image (5 bytes)"

    def test_content_text_none(self) -> None:
        assert content_text(None) == ""


class TestWireForm:
    def test_null_optionals_omitted(self) -> None:
        wire = Message(role="user", content="hi").to_wire()
        assert wire == {"role": "user", "content": "hi"}

    def test_null_content_kept(self) -> None:
        wire = Message(role="assistant", tool_calls=[_call()]).to_wire()
        assert "content" in wire
        assert wire["content"] is None
        assert wire["tool_calls"][0]["function"]["name"] == "execute"

    def test_tool_message_fields(self) -> None:
        wire = Message.tool_response("read", "call_2", "data").to_wire()
        assert wire == {
            "role": "tool",
            "content": "data",
            "name": "read",
            "tool_call_id": "call_2",
        }


class TestHumanReadable:
    def test_header_and_text(self) -> None:
        assert Message(role="user", content="hi").human_readable() == "# user\nhi"

    def test_tool_calls_fenced(self) -> None:
        msg = Message(role="assistant", tool_calls=[_call(arguments='{"command":"ls"}')])
        assert msg.human_readable() == '# assistant\n```execute\n{"command":"ls"}\n```'


class TestChat:
    def test_defaults(self) -> None:
        chat = Chat()
        assert chat.model == ""
        assert chat.messages == []
        assert chat.max_tokens == 4096

    def test_null_tools_and_stream_omitted(self) -> None:
        wire = Chat(model="gpt").to_wire()
        assert "tools" not in wire
        assert "stream" not in wire
        assert wire["model"] == "gpt"

    def test_stream_included_when_set(self) -> None:
        chat = Chat(model="gpt")
        chat.stream = True
        assert chat.to_wire()["stream"] is True

    def test_unknown_keys_round_trip(self) -> None:
        raw = {"model": "gpt", "messages": [], "seed": 42, "user": "me"}
        wire = Chat.model_validate(raw).to_wire()
        assert wire["seed"] == 42
        assert wire["user"] == "me"

    def test_messages_serialised_with_wire_rules(self) -> None:
        chat = Chat.model_validate(
            {"model": "m", "messages": [{"role": "system", "content": "be nice"}]}
        )
        dumped = json.loads(json.dumps(chat.to_wire()))
        assert dumped["messages"] == [{"role": "system", "content": "be nice"}]
