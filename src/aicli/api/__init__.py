"""Chat-completion endpoint access."""

from aicli.api.client import (
    ChatEndpoint,
    EndpointSettings,
    resolve_endpoint,
)

__all__ = [
    "ChatEndpoint",
    "EndpointSettings",
    "resolve_endpoint",
]
