"""Chat persistence -- one pretty-printed JSON document per chat id."""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path

from pydantic import ValidationError

from aicli.conversation.models import Chat
from aicli.conversation.state import ConversationState, Endpoint
from aicli.errors import StoreError

logger = logging.getLogger(__name__)

#: Template every new chat is created from, looked up in the config dir.
EMPTY_CHAT_TEMPLATE = "empty_chat.json"

#: Valid chat id pattern -- keeps ids usable as plain file names.
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class ChatStore:
    """Loads, creates and saves chats under a chats directory."""

    def __init__(self, config_dir: Path, chats_dir: Path) -> None:
        self._config_dir = config_dir
        self._chats_dir = chats_dir

    @property
    def chats_dir(self) -> Path:
        return self._chats_dir

    @property
    def template_path(self) -> Path:
        return self._config_dir / EMPTY_CHAT_TEMPLATE

    def path_for(self, chat_id: str) -> Path:
        if not _SAFE_ID_RE.match(chat_id) or chat_id.startswith("."):
            msg = (
                f"Invalid chat id {chat_id!r}: use letters, digits, "
                "'.', '_' or '-' only."
            )
            raise StoreError(msg)
        return self._chats_dir / f"{chat_id}.json"

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #

    def load(self, chat_id: str) -> Chat:
        """Read an existing chat.

        Raises:
            StoreError: If the file is missing, unreadable or invalid.
        """
        return _read_chat(self.path_for(chat_id))

    def new(self, model_name: str | None = None) -> Chat:
        """Create a chat from the template, filling in an empty model name.

        Raises:
            StoreError: If the template is unusable or the chats directory
                is missing or read-only.
        """
        chat = _read_chat(self.template_path)
        if not chat.model and model_name:
            chat.model = model_name

        if not self._chats_dir.is_dir():
            msg = f"Chats directory not found: {self._chats_dir}"
            raise StoreError(msg)
        if not os.access(self._chats_dir, os.W_OK):
            msg = f"Cannot write to chats directory: {self._chats_dir}"
            raise StoreError(msg)
        return chat

    def open(
        self,
        chat_id: str,
        model_name: str | None = None,
        endpoint: Endpoint | None = None,
        capture_dir: Path | None = None,
    ) -> ConversationState:
        """Load *chat_id*, or start it from the template if it does not exist.

        A freshly loaded chat starts clean; a new one starts dirty so it is
        written on the first save.
        """
        path = self.path_for(chat_id)
        if path.is_file():
            chat = self.load(chat_id)
            dirty = False
        else:
            logger.info("Chat %r not found, creating from template", chat_id)
            chat = self.new(model_name)
            dirty = True
        return ConversationState(
            chat,
            endpoint=endpoint,
            dirty=dirty,
            capture_dir=capture_dir,
        )

    # ------------------------------------------------------------------ #
    # Saving
    # ------------------------------------------------------------------ #

    def save(self, chat_id: str, state: ConversationState) -> bool:
        """Write the chat if it changed since load. Returns True if written."""
        if not state.dirty:
            logger.debug("Chat %r unchanged, skipping save", chat_id)
            return False
        path = self.path_for(chat_id)
        serialised = json.dumps(state.chat.to_wire(), indent=2, ensure_ascii=False)
        try:
            path.write_text(serialised + "\n", encoding="utf-8")
        except OSError as exc:
            msg = f"Cannot save chat {chat_id!r}: {exc}"
            raise StoreError(msg) from exc
        state.dirty = False
        return True


def _read_chat(path: Path) -> Chat:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        msg = f"Chat file not found: {path}"
        raise StoreError(msg) from exc
    except OSError as exc:
        msg = f"Cannot read chat file {path}: {exc}"
        raise StoreError(msg) from exc

    try:
        return Chat.model_validate_json(text)
    except ValidationError as exc:
        parts = []
        for err in exc.errors():
            loc = " → ".join(str(s) for s in err["loc"])
            parts.append(f"  {loc}: {err['msg']}")
        joined = "\n".join(parts)
        msg = f"Invalid chat document {path.name}:\n{joined}"
        raise StoreError(msg) from exc
