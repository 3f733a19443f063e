"""Rebuild an assistant turn from a chat-completion response body.

Streaming bodies are server-sent-event style: newline separated frames of
the form ``data: <json>``, terminated by ``data: [DONE]``.  Each frame holds
an incremental ``delta`` for the first choice.  Text deltas are concatenated;
tool-call deltas are merged into one in-progress call whose ``arguments``
arrive in fragments.  A fragment with a different ``index`` or ``id`` starts
a new call, and a ``finish_reason`` of ``"tool_calls"`` closes the
in-progress call.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from aicli.conversation.models import FunctionCall, Message, ToolCall
from aicli.errors import MultipleToolCallsError, ProtocolError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"
_DATA_FIELD = "data:"

#: A streamed turn may complete at most this many tool calls.
MAX_TOOL_CALLS_PER_TURN = 1


def is_streaming_body(body: str) -> bool:
    """Return True if *body* looks like an SSE frame sequence."""
    return DATA_PREFIX in body and DONE_MARKER in body


@dataclass
class _ToolCallDraft:
    """Accumulation state for the tool call currently being streamed."""

    index: int | None = None
    id: str = ""
    type: str = ""
    name: str = ""
    arguments: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return self.index is None and not self.id and not self.name and not self.arguments

    def belongs_to_other_call(self, fragment: dict[str, Any]) -> bool:
        index = fragment.get("index")
        if isinstance(index, int) and self.index is not None and index != self.index:
            return True
        call_id = fragment.get("id")
        return isinstance(call_id, str) and bool(call_id) and bool(self.id) and call_id != self.id

    def finalize(self) -> ToolCall:
        return ToolCall(
            id=self.id,
            type=self.type or "function",
            function=FunctionCall(name=self.name, arguments="".join(self.arguments)),
        )


class StreamReconstructor:
    """Folds decoded frames into a single assistant message.

    Feed frame payloads with :meth:`feed` (or raw lines with
    :meth:`feed_line`) and call :meth:`finish` once the stream is over.
    """

    def __init__(self) -> None:
        self._text: list[str] = []
        self._draft = _ToolCallDraft()
        self._completed: list[ToolCall] = []

    def feed_line(self, line: str) -> None:
        """Decode one protocol line; non-data lines are ignored."""
        line = line.strip()
        if not line or line == DONE_MARKER or not line.startswith(_DATA_FIELD):
            return
        # SSE allows a single optional space after the field name.
        data = line[len(_DATA_FIELD) :].removeprefix(" ")
        if data == DONE_MARKER:
            return
        try:
            frame = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Skipping unparsable stream frame: %.80s", data)
            return
        if isinstance(frame, dict):
            self.feed(frame)

    def feed(self, frame: dict[str, Any]) -> None:
        """Merge one decoded frame into the accumulated turn."""
        choices = frame.get("choices")
        if not isinstance(choices, list) or not choices:
            return
        choice = choices[0]
        if not isinstance(choice, dict):
            return

        delta = choice.get("delta")
        if isinstance(delta, dict):
            content = delta.get("content")
            if isinstance(content, str):
                self._text.append(content)
            for fragment in delta.get("tool_calls") or []:
                if isinstance(fragment, dict):
                    self._merge_tool_call(fragment)

        if choice.get("finish_reason") == "tool_calls":
            self._close_draft()

    def _close_draft(self) -> None:
        logger.debug("Tool call %r complete", self._draft.id)
        self._completed.append(self._draft.finalize())
        self._draft = _ToolCallDraft()

    def _merge_tool_call(self, fragment: dict[str, Any]) -> None:
        if not self._draft.is_empty() and self._draft.belongs_to_other_call(fragment):
            self._close_draft()
        draft = self._draft
        if isinstance(fragment.get("index"), int):
            draft.index = fragment["index"]
        if isinstance(fragment.get("id"), str):
            draft.id = fragment["id"]
        if isinstance(fragment.get("type"), str):
            draft.type = fragment["type"]
        function = fragment.get("function")
        if isinstance(function, dict):
            if isinstance(function.get("name"), str):
                draft.name = function["name"]
            if isinstance(function.get("arguments"), str):
                draft.arguments.append(function["arguments"])

    def finish(self) -> Message:
        """Return the reconstructed assistant message.

        Raises:
            MultipleToolCallsError: If more than one tool call completed.
        """
        if len(self._completed) > MAX_TOOL_CALLS_PER_TURN:
            ids = ", ".join(call.id for call in self._completed)
            msg = (
                f"Streamed turn completed {len(self._completed)} tool calls "
                f"({ids}); at most {MAX_TOOL_CALLS_PER_TURN} is supported"
            )
            raise MultipleToolCallsError(msg)
        text = "".join(self._text)
        return Message(
            role="assistant",
            content=text or None,
            tool_calls=list(self._completed) or None,
        )


def parse_streaming_response(body: str) -> Message:
    """Reconstruct the assistant message from an accumulated SSE body."""
    reconstructor = StreamReconstructor()
    for line in body.splitlines():
        reconstructor.feed_line(line)
    return reconstructor.finish()


def parse_response(body: str) -> Message:
    """Extract ``choices[0].message`` from a non-streaming response body."""
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        msg = f"Response is not valid JSON: {exc}"
        raise ProtocolError(msg) from exc

    if not isinstance(payload, dict) or "choices" not in payload:
        msg = "No choices in the return object"
        raise ProtocolError(msg)
    choices = payload["choices"]
    if not isinstance(choices, list) or not choices:
        msg = "No element 0 in the choices object"
        raise ProtocolError(msg)
    first = choices[0]
    if not isinstance(first, dict) or "message" not in first:
        msg = "No message in the choices element 0"
        raise ProtocolError(msg)

    try:
        return Message.model_validate(first["message"])
    except ValidationError as exc:
        msg = f"Malformed message in response: {exc.error_count()} validation error(s)"
        raise ProtocolError(msg) from exc


def parse_body(body: str) -> Message:
    """Pick the streaming or plain parser based on the body's shape."""
    if is_streaming_body(body):
        return parse_streaming_response(body)
    return parse_response(body)
