"""aicli: a chat-completion client with local tool execution."""

__version__ = "0.3.0"
