"""Conversation state machine: the ordered message log and its invariants."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from aicli.conversation.models import Chat, Content, Message, Role, ToolCall
from aicli.conversation.streaming import is_streaming_body, parse_body
from aicli.errors import (
    ConversationEmptyError,
    ConversationError,
    EndpointError,
    LastMessageFromAssistantError,
    RoleAlternationError,
    SystemPromptNotFoundError,
    ToolCallNotFoundError,
)

logger = logging.getLogger(__name__)

REQUEST_CAPTURE_FILE = "last_request.json"
RESPONSE_CAPTURE_FILE = "last_response.json"


class Endpoint(Protocol):
    """Anything that can POST a serialised chat and return the body."""

    async def post(self, body: str) -> str: ...


class ConversationState:
    """Owns one chat's message log for the duration of an invocation.

    Enforces two invariants:

    * **role alternation** -- a non-tool message never follows a message
      with the same role;
    * **pairing** -- every tool call is answered by at most one ``tool``
      message carrying its id, and the oldest unanswered id is always
      computable.

    Every mutation sets :attr:`dirty` so the store knows to persist it.
    """

    def __init__(
        self,
        chat: Chat,
        endpoint: Endpoint | None = None,
        dirty: bool = True,
        capture_dir: Path | None = None,
    ) -> None:
        self.chat = chat
        self.endpoint = endpoint
        self.dirty = dirty
        self.capture_dir = capture_dir

    @property
    def messages(self) -> list[Message]:
        return self.chat.messages

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def last_message(self) -> Message:
        """Return the newest message.

        Raises:
            ConversationEmptyError: If the log is empty.
        """
        if not self.chat.messages:
            msg = "No messages in loaded chat"
            raise ConversationEmptyError(msg)
        return self.chat.messages[-1]

    def oldest_pending_tool_call_id(self) -> str | None:
        """Return the id of the oldest tool call still awaiting a response."""
        pending: list[str] = []
        for message in self.chat.messages:
            for call in message.tool_calls or []:
                pending.append(call.id)
            if message.tool_call_id is not None:
                pending = [p for p in pending if p != message.tool_call_id]
        return pending[0] if pending else None

    def lookup_tool_call(self, tool_call_id: str) -> ToolCall:
        """Find the tool call with *tool_call_id* among assistant messages.

        Raises:
            ToolCallNotFoundError: If no such call exists.
        """
        for message in self.chat.messages:
            for call in message.tool_calls or []:
                if call.id == tool_call_id:
                    return call
        msg = f"Tool call id not found: {tool_call_id}"
        raise ToolCallNotFoundError(msg)

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def add_message(self, message: Message) -> None:
        """Append *message* without any ordering checks."""
        self.chat.messages.append(message)
        self.dirty = True

    def append_normal(self, role: Role, content: Content) -> Message:
        """Append a plain message, refusing two consecutive turns by one role.

        Raises:
            ConversationError: If *role* is ``tool``; use
                :meth:`append_tool_response` for those.
            RoleAlternationError: If the last message has the same role.
        """
        if role == "tool":
            msg = "Tool messages must answer a tool call; use append_tool_response"
            raise ConversationError(msg)
        if self.chat.messages and self.chat.messages[-1].role == role:
            msg = f"Last message was also from role '{role}'"
            raise RoleAlternationError(msg)
        message = Message.normal(role, content)
        self.add_message(message)
        return message

    def append_tool_response(
        self,
        role: Role,
        name: str,
        tool_call_id: str | None,
        content: Content,
    ) -> Message:
        """Append a tool response; may follow a message of any role.

        When *tool_call_id* is ``None`` the oldest pending call is answered.

        Raises:
            ToolCallNotFoundError: If no id was given and nothing is pending.
        """
        if tool_call_id is None:
            tool_call_id = self.oldest_pending_tool_call_id()
            if tool_call_id is None:
                msg = "No pending tool call to respond to"
                raise ToolCallNotFoundError(msg)
        message = Message.tool_response(
            name=name,
            tool_call_id=tool_call_id,
            content=content,
            role=role,
        )
        self.add_message(message)
        return message

    def set_system_prompt(self, text: str) -> None:
        """Replace the content of the leading system message.

        Raises:
            SystemPromptNotFoundError: If the first message is not ``system``.
        """
        if not self.chat.messages:
            msg = "There are no messages."
            raise SystemPromptNotFoundError(msg)
        first = self.chat.messages[0]
        if first.role != "system":
            msg = "First message was not a system prompt"
            raise SystemPromptNotFoundError(msg)
        first.content = text
        self.dirty = True

    # ------------------------------------------------------------------ #
    # Network turn
    # ------------------------------------------------------------------ #

    async def submit_turn(self) -> Message:
        """Send the conversation and append the assistant's reply.

        Raises:
            ConversationEmptyError: If there is nothing to send.
            LastMessageFromAssistantError: If the assistant spoke last.
            EndpointError: If no endpoint is configured or the request fails.
            ProtocolError: If the response cannot be parsed.
        """
        if self.last_message().role == "assistant":
            msg = "Last message was from the assistant"
            raise LastMessageFromAssistantError(msg)
        if self.endpoint is None:
            msg = "No chat endpoint configured"
            raise EndpointError(msg)

        pending = self.oldest_pending_tool_call_id()
        if pending is not None:
            logger.warning("Submitting with unanswered tool call %s", pending)

        self.chat.stream = True
        # Serialise before awaiting so the log cannot change mid-send.
        body = json.dumps(self.chat.to_wire(), indent=2)
        self._capture(REQUEST_CAPTURE_FILE, body)

        logger.debug("Submitting %d messages", len(self.chat.messages))
        response_body = await self.endpoint.post(body)
        self._capture(RESPONSE_CAPTURE_FILE, response_body)

        logger.debug(
            "Parsing %s response (%d chars)",
            "streaming" if is_streaming_body(response_body) else "plain",
            len(response_body),
        )
        message = parse_body(response_body)
        self.add_message(message)
        return message

    def _capture(self, filename: str, text: str) -> None:
        if self.capture_dir is None:
            return
        (self.capture_dir / filename).write_text(text, encoding="utf-8")
