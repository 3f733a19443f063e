"""Tests for streamed and plain response reconstruction."""

from __future__ import annotations

import json
from typing import Any

import pytest

from aicli.conversation.streaming import (
    StreamReconstructor,
    is_streaming_body,
    parse_body,
    parse_response,
    parse_streaming_response,
)
from aicli.errors import MultipleToolCallsError, ProtocolError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _frame(delta: dict[str, Any], finish_reason: str | None = None) -> str:
    payload = {"choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}]}
    return f"data: {json.dumps(payload)}"


def _body(*frames: str) -> str:
    return "\n\n".join([*frames, "data: [DONE]"]) + "\n"


def _tool_frames(call_id: str, name: str, *fragments: str) -> list[str]:
    frames = [
        _frame(
            {
                "tool_calls": [
                    {
                        "index": 0,
                        "id": call_id,
                        "type": "function",
                        "function": {"name": name, "arguments": ""},
                    }
                ]
            }
        )
    ]
    for fragment in fragments:
        frames.append(
            _frame({"tool_calls": [{"index": 0, "function": {"arguments": fragment}}]})
        )
    frames.append(_frame({}, finish_reason="tool_calls"))
    return frames


# ===================================================================
# Detection
# ===================================================================


class TestIsStreamingBody:
    def test_sse_body(self) -> None:
        assert is_streaming_body(_body(_frame({"content": "x"})))

    def test_plain_json(self) -> None:
        assert not is_streaming_body('{"choices": []}')

    def test_needs_done_marker(self) -> None:
        assert not is_streaming_body(_frame({"content": "x"}))


# ===================================================================
# Streaming
# ===================================================================


class TestStreamingText:
    def test_text_fragments_concatenate(self) -> None:
        body = _body(
            _frame({"role": "assistant", "content": ""}),
            _frame({"content": "Hi"}),
            _frame({"content": " there"}),
            _frame({}, finish_reason="stop"),
        )
        message = parse_streaming_response(body)
        assert message.role == "assistant"
        assert message.content == "Hi there"
        assert message.tool_calls is None

    def test_no_text_gives_null_content(self) -> None:
        message = parse_streaming_response(_body(_frame({}, finish_reason="stop")))
        assert message.content is None
        assert message.tool_calls is None

    def test_unparsable_frame_skipped(self) -> None:
        body = _body(_frame({"content": "a"}), "data: {not json", _frame({"content": "b"}))
        assert parse_streaming_response(body).content == "ab"

    def test_non_data_lines_ignored(self) -> None:
        body = _body(": keep-alive", "event: message", _frame({"content": "ok"}))
        assert parse_streaming_response(body).content == "ok"

    def test_data_without_space_accepted(self) -> None:
        body = 'data:{"choices":[{"delta":{"content":"tight"}}]}\ndata: [DONE]\n'
        assert parse_streaming_response(body).content == "tight"

    def test_frame_without_choices_ignored(self) -> None:
        body = _body('data: {"usage": {"total_tokens": 3}}', _frame({"content": "x"}))
        assert parse_streaming_response(body).content == "x"


class TestStreamingToolCalls:
    def test_argument_fragments_joined(self) -> None:
        body = _body(*_tool_frames("call_1", "execute", '{"a":', "1}"))
        message = parse_streaming_response(body)
        assert message.content is None
        assert message.tool_calls is not None
        (call,) = message.tool_calls
        assert call.id == "call_1"
        assert call.type == "function"
        assert call.function.name == "execute"
        assert call.function.arguments == '{"a":1}'

    def test_text_and_tool_call(self) -> None:
        body = _body(
            _frame({"content": "Let me check."}),
            *_tool_frames("call_9", "read", '{"path": "x"}'),
        )
        message = parse_streaming_response(body)
        assert message.content == "Let me check."
        assert message.tool_calls is not None
        assert message.tool_calls[0].function.arguments == '{"path": "x"}'

    def test_unfinished_tool_call_dropped(self) -> None:
        frames = _tool_frames("call_1", "execute", "{}")[:-1]
        message = parse_streaming_response(_body(*frames))
        assert message.tool_calls is None

    def test_two_tool_calls_rejected(self) -> None:
        body = _body(
            *_tool_frames("call_1", "read", "{}"),
            *_tool_frames("call_2", "write", "{}"),
        )
        with pytest.raises(MultipleToolCallsError, match="call_1, call_2"):
            parse_streaming_response(body)

    def test_parallel_calls_under_one_finish_rejected(self) -> None:
        def start(index: int, call_id: str, args: str) -> str:
            call = {
                "index": index,
                "id": call_id,
                "type": "function",
                "function": {"name": "execute", "arguments": args},
            }
            return _frame({"tool_calls": [call]})

        body = _body(
            start(0, "a", '{"x":1}'),
            start(1, "b", '{"command":"ls"}'),
            _frame({}, finish_reason="tool_calls"),
        )
        with pytest.raises(MultipleToolCallsError, match="a, b"):
            parse_streaming_response(body)

    def test_new_id_without_index_starts_new_call(self) -> None:
        reconstructor = StreamReconstructor()
        for call_id in ("a", "b"):
            fragment = {"id": call_id, "function": {"name": "read", "arguments": "{}"}}
            reconstructor.feed({"choices": [{"delta": {"tool_calls": [fragment]}}]})
        reconstructor.feed({"choices": [{"delta": {}, "finish_reason": "tool_calls"}]})
        with pytest.raises(MultipleToolCallsError):
            reconstructor.finish()

    def test_multiple_tool_calls_is_protocol_error(self) -> None:
        assert issubclass(MultipleToolCallsError, ProtocolError)


class TestReconstructorDirect:
    def test_feed_decoded_frames(self) -> None:
        rec = StreamReconstructor()
        rec.feed({"choices": [{"delta": {"content": "x"}}]})
        rec.feed({"choices": [{"delta": {"content": "y"}}]})
        assert rec.finish().content == "xy"

    def test_done_line_ignored(self) -> None:
        rec = StreamReconstructor()
        rec.feed_line("[DONE]")
        rec.feed_line("data: [DONE]")
        assert rec.finish().content is None


# ===================================================================
# Plain responses
# ===================================================================


class TestParseResponse:
    def test_message_extracted(self) -> None:
        body = json.dumps(
            {"choices": [{"index": 0, "message": {"role": "assistant", "content": "Hello"}}]}
        )
        message = parse_response(body)
        assert message.role == "assistant"
        assert message.content == "Hello"

    def test_tool_call_arguments_unchanged(self) -> None:
        arguments = '{ "command" : "ls -la",\n "extra": [1, 2] }'
        body = json.dumps(
            {
                "choices": [
                    {
                        "message": {
                            "role": "assistant",
                            "content": None,
                            "tool_calls": [
                                {
                                    "id": "call_7",
                                    "type": "function",
                                    "function": {"name": "execute", "arguments": arguments},
                                }
                            ],
                        }
                    }
                ]
            }
        )
        message = parse_response(body)
        assert message.tool_calls is not None
        assert message.tool_calls[0].function.arguments == arguments

    def test_missing_choices(self) -> None:
        with pytest.raises(ProtocolError, match="No choices"):
            parse_response('{"error": "nope"}')

    def test_empty_choices(self) -> None:
        with pytest.raises(ProtocolError, match="No element 0"):
            parse_response('{"choices": []}')

    def test_missing_message(self) -> None:
        with pytest.raises(ProtocolError, match="No message"):
            parse_response('{"choices": [{"index": 0}]}')

    def test_invalid_json(self) -> None:
        with pytest.raises(ProtocolError, match="not valid JSON"):
            parse_response("<html>bad gateway</html>")

    def test_malformed_message(self) -> None:
        with pytest.raises(ProtocolError, match="Malformed message"):
            parse_response('{"choices": [{"message": {"role": "robot"}}]}')


class TestParseBody:
    def test_dispatches_to_streaming(self) -> None:
        assert parse_body(_body(_frame({"content": "s"}))).content == "s"

    def test_dispatches_to_plain(self) -> None:
        body = json.dumps({"choices": [{"message": {"role": "assistant", "content": "p"}}]})
        assert parse_body(body).content == "p"
