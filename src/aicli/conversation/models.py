"""Pydantic v2 models for chat documents and their messages."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Role = Literal["system", "user", "assistant", "tool"]

#: Message keys dropped from the wire form when they are null.
_OPTIONAL_MESSAGE_KEYS = ("name", "tool_call_id", "tool_calls")

#: Chat keys dropped from the wire form when they are null.
_OPTIONAL_CHAT_KEYS = ("tools", "stream")


# --------------------------------------------------------------------------- #
# Content
# --------------------------------------------------------------------------- #


class TextPart(BaseModel):
    """A text segment of a multi-part message."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    """Location (usually a data URL) of an attached image."""

    url: str


class ImagePart(BaseModel):
    """An image segment of a multi-part message."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


ContentPart = Annotated[TextPart | ImagePart, Field(discriminator="type")]
"""One element of a multi-part message, tagged by ``type``."""

Content = str | list[ContentPart]
"""Message content: a plain string, or a list of tagged parts.

A one-element list holding a single ``TextPart`` means the same thing as a
plain string but keeps its list shape on the wire.
"""


def content_text(content: Content | None) -> str:
    """Flatten *content* into display text (images become a size marker)."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    pieces: list[str] = []
    for part in content:
        if isinstance(part, TextPart):
            pieces.append(part.text)
        else:
            pieces.append(f"Image ({len(part.image_url.url)} bytes)")
    return "".join(pieces)


# --------------------------------------------------------------------------- #
# Tool calls
# --------------------------------------------------------------------------- #


class FunctionCall(BaseModel):
    """The function half of a tool call; ``arguments`` is raw JSON text."""

    name: str
    arguments: str


class ToolCall(BaseModel):
    """A model-issued request to run a local tool."""

    id: str
    type: str = "function"
    function: FunctionCall


# --------------------------------------------------------------------------- #
# Messages
# --------------------------------------------------------------------------- #


class Message(BaseModel):
    """One entry of the conversation log."""

    model_config = ConfigDict(extra="ignore")

    role: Role
    content: Content | None = None
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[ToolCall] | None = None

    @model_validator(mode="after")
    def _validate_role_fields(self) -> Message:
        if self.tool_calls is not None and self.role != "assistant":
            msg = f"Only assistant messages may carry tool_calls, not '{self.role}'"
            raise ValueError(msg)
        if self.role != "tool" and (
            self.tool_call_id is not None or self.name is not None
        ):
            msg = f"Only tool messages may carry name/tool_call_id, not '{self.role}'"
            raise ValueError(msg)
        return self

    @classmethod
    def normal(cls, role: Role, content: Content) -> Message:
        return cls(role=role, content=content)

    @classmethod
    def tool_response(
        cls,
        name: str,
        tool_call_id: str,
        content: Content,
        role: Role = "tool",
    ) -> Message:
        return cls(role=role, name=name, tool_call_id=tool_call_id, content=content)

    def to_wire(self) -> dict[str, Any]:
        """Serialise for the API: ``content`` always present, other nulls omitted."""
        data = self.model_dump(mode="json")
        for key in _OPTIONAL_MESSAGE_KEYS:
            if data.get(key) is None:
                data.pop(key, None)
        return data

    def human_readable(self) -> str:
        """Render as a small markdown block for terminal output."""
        lines = [f"# {self.role}"]
        text = content_text(self.content)
        if text:
            lines.append(text)
        for call in self.tool_calls or []:
            lines.append(f"```{call.function.name}\n{call.function.arguments}\n```")
        return "\n".join(lines)


# --------------------------------------------------------------------------- #
# Chat document
# --------------------------------------------------------------------------- #


class Chat(BaseModel):
    """A persisted conversation plus the request parameters sent with it.

    Unknown keys from the stored document are kept and sent back unchanged.
    """

    model_config = ConfigDict(extra="allow", protected_namespaces=())

    model: str = ""
    messages: list[Message] = Field(default_factory=list)
    tools: list[dict[str, Any]] | None = None
    max_tokens: int = 4096
    temperature: float = 1.0
    frequency_penalty: float = 0
    presence_penalty: float = 0
    top_p: float = 1.0
    stop: list[str] | None = None
    stream: bool | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialise the request body (also the on-disk format)."""
        data = self.model_dump(mode="json")
        data["messages"] = [message.to_wire() for message in self.messages]
        for key in _OPTIONAL_CHAT_KEYS:
            if data.get(key) is None:
                data.pop(key, None)
        return data
