"""Exception hierarchy shared across aicli components.

Every error a user can trigger derives from ``AicliError`` so the CLI can
report it uniformly and exit non-zero.
"""

from __future__ import annotations


class AicliError(Exception):
    """Base class for user-facing aicli errors."""


# --------------------------------------------------------------------------- #
# Conversation
# --------------------------------------------------------------------------- #


class ConversationError(AicliError):
    """A conversation operation violated an ordering invariant."""


class ConversationEmptyError(ConversationError):
    """The conversation holds no messages (or no chat is loaded)."""


class RoleAlternationError(ConversationError):
    """A message was appended with the same role as the previous one."""


class ToolCallNotFoundError(ConversationError):
    """No tool call with the requested id exists in the conversation."""


class LastMessageFromAssistantError(ConversationError):
    """A turn was submitted while the assistant already has the last word."""


class SystemPromptNotFoundError(ConversationError):
    """The first message of the conversation is not a system prompt."""


# --------------------------------------------------------------------------- #
# Wire protocol
# --------------------------------------------------------------------------- #


class ProtocolError(AicliError):
    """A response body could not be turned into an assistant message."""


class MultipleToolCallsError(ProtocolError):
    """A streamed turn completed more than one tool call."""


class EndpointError(AicliError):
    """The chat-completion endpoint could not be reached."""


# --------------------------------------------------------------------------- #
# Tools
# --------------------------------------------------------------------------- #


class ToolError(AicliError):
    """A tool ran but reported a failure."""


class UnknownToolError(ToolError):
    """The dispatcher has no handler for the requested tool name."""


class ToolArgumentError(ToolError):
    """Tool arguments were malformed or missing a required field."""


class SpawnError(AicliError):
    """The shell used by the command executor could not be started."""


# --------------------------------------------------------------------------- #
# Storage / configuration
# --------------------------------------------------------------------------- #


class StoreError(AicliError):
    """A chat document could not be loaded or saved."""


class ConfigError(AicliError):
    """User-facing configuration error."""
