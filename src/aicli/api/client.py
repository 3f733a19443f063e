"""HTTP client for OpenAI-compatible chat-completion endpoints."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass

import httpx

from aicli.errors import ConfigError, EndpointError

logger = logging.getLogger(__name__)

#: Default request timeout (seconds); streamed completions can be slow.
DEFAULT_TIMEOUT = 600.0

#: Maximum characters of an error body echoed back to the user.
_MAX_ERROR_BODY = 500

#: Pattern matching common API key formats to redact from error messages.
_API_KEY_RE = re.compile(
    r"(sk-[a-zA-Z0-9]{20,}|key-[a-zA-Z0-9]{20,}|[a-f0-9]{32})",
)


def _sanitize(text: str, api_key: str = "") -> str:
    """Return *text* with API keys redacted."""
    if api_key:
        text = text.replace(api_key, "[REDACTED]")
    return _API_KEY_RE.sub("[REDACTED]", text)


@dataclass(frozen=True)
class EndpointSettings:
    """Where and how to reach the chat-completion API."""

    url: str
    api_key: str
    model_name: str | None = None


def resolve_endpoint(environ: Mapping[str, str]) -> EndpointSettings:
    """Build endpoint settings from environment variables.

    Azure OpenAI (``AZURE_API_KEY``, ``AZURE_API_BASE``,
    ``AZURE_API_VERSION``) takes precedence over a generic OpenAI-compatible
    server (``OAICOMPAT_API_KEY``, ``OAICOMPAT_API_BASE``).
    ``OAICOMPAT_MODEL_NAME`` is picked up in either case.

    Raises:
        ConfigError: If neither set of variables is complete.
    """
    model_name = environ.get("OAICOMPAT_MODEL_NAME") or None

    azure_key = environ.get("AZURE_API_KEY")
    azure_base = environ.get("AZURE_API_BASE")
    azure_version = environ.get("AZURE_API_VERSION")
    if azure_key and azure_base and azure_version:
        url = f"{azure_base}chat/completions?api-version={azure_version}"
        return EndpointSettings(url=url, api_key=azure_key, model_name=model_name)

    compat_key = environ.get("OAICOMPAT_API_KEY")
    compat_base = environ.get("OAICOMPAT_API_BASE")
    if compat_key and compat_base:
        url = f"{compat_base}/chat/completions"
        return EndpointSettings(url=url, api_key=compat_key, model_name=model_name)

    msg = (
        "No API endpoint configured. Set AZURE_API_KEY, AZURE_API_BASE and "
        "AZURE_API_VERSION, or OAICOMPAT_API_KEY and OAICOMPAT_API_BASE."
    )
    raise ConfigError(msg)


class ChatEndpoint:
    """Posts serialised chats and returns the raw response body.

    The body is read incrementally so streamed responses are accumulated
    frame by frame; parsing is left to the caller.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: EndpointSettings,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> ChatEndpoint:
        return cls(settings.url, settings.api_key, timeout=timeout)

    @property
    def url(self) -> str:
        return self._url

    def _headers(self) -> dict[str, str]:
        return {
            "api-key": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def post(self, body: str) -> str:
        """POST *body* and return the full response text.

        Raises:
            EndpointError: On transport failures or an HTTP error status.
        """
        chunks: list[str] = []
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                async with client.stream(
                    "POST",
                    self._url,
                    content=body.encode("utf-8"),
                    headers=self._headers(),
                ) as response:
                    async for text in response.aiter_text():
                        logger.debug("Received %d chars", len(text))
                        chunks.append(text)
                    status = response.status_code
        except httpx.HTTPError as exc:
            safe = _sanitize(str(exc), self._api_key)
            msg = f"Request to chat endpoint failed: {safe or type(exc).__name__}"
            raise EndpointError(msg) from exc

        result = "".join(chunks)
        if status >= 400:
            excerpt = _sanitize(result[:_MAX_ERROR_BODY], self._api_key)
            msg = f"Chat endpoint returned HTTP {status}: {excerpt}"
            raise EndpointError(msg)
        return result
