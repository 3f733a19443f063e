"""Conversation models, streaming reconstruction, state machine and storage."""

from aicli.conversation.models import (
    Chat,
    Content,
    FunctionCall,
    ImagePart,
    ImageUrl,
    Message,
    TextPart,
    ToolCall,
    content_text,
)
from aicli.conversation.state import ConversationState, Endpoint
from aicli.conversation.store import ChatStore
from aicli.conversation.streaming import (
    StreamReconstructor,
    is_streaming_body,
    parse_body,
    parse_response,
    parse_streaming_response,
)

__all__ = [
    "Chat",
    "ChatStore",
    "Content",
    "ConversationState",
    "Endpoint",
    "FunctionCall",
    "ImagePart",
    "ImageUrl",
    "Message",
    "StreamReconstructor",
    "TextPart",
    "ToolCall",
    "content_text",
    "is_streaming_body",
    "parse_body",
    "parse_response",
    "parse_streaming_response",
]
