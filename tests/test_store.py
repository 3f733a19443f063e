"""Tests for chat persistence."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from aicli.conversation.store import ChatStore
from aicli.errors import StoreError


@pytest.fixture
def store(project_dirs: tuple[Path, Path]) -> ChatStore:
    config_dir, chats_dir = project_dirs
    return ChatStore(config_dir, chats_dir)


class TestOpen:
    def test_new_chat_from_template(self, store: ChatStore) -> None:
        state = store.open("demo", model_name="gpt-test")
        assert state.dirty is True
        assert state.chat.model == "gpt-test"
        assert state.messages[0].role == "system"

    def test_template_model_not_overridden(self, store: ChatStore, project_dirs: tuple[Path, Path]) -> None:
        config_dir, _ = project_dirs
        template = json.loads((config_dir / "empty_chat.json").read_text())
        template["model"] = "fixed"
        (config_dir / "empty_chat.json").write_text(json.dumps(template))
        assert store.open("demo", model_name="other").chat.model == "fixed"

    def test_existing_chat_loaded_clean(self, store: ChatStore) -> None:
        state = store.open("demo", model_name="m")
        state.append_normal("user", "hi")
        store.save("demo", state)

        reopened = store.open("demo")
        assert reopened.dirty is False
        assert [m.content for m in reopened.messages][-1] == "hi"

    def test_missing_template(self, tmp_path: Path) -> None:
        chats = tmp_path / "chats"
        chats.mkdir()
        with pytest.raises(StoreError, match="not found"):
            ChatStore(tmp_path / "nowhere", chats).open("demo")

    def test_missing_chats_dir(self, project_dirs: tuple[Path, Path], tmp_path: Path) -> None:
        config_dir, _ = project_dirs
        store = ChatStore(config_dir, tmp_path / "absent")
        with pytest.raises(StoreError, match="Chats directory not found"):
            store.open("demo")

    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
    def test_read_only_chats_dir(self, project_dirs: tuple[Path, Path]) -> None:
        config_dir, chats_dir = project_dirs
        chats_dir.chmod(0o500)
        try:
            with pytest.raises(StoreError, match="Cannot write"):
                ChatStore(config_dir, chats_dir).open("demo")
        finally:
            chats_dir.chmod(0o700)

    def test_invalid_document(self, store: ChatStore) -> None:
        store.path_for("bad").write_text('{"messages": [{"role": "robot"}]}')
        with pytest.raises(StoreError, match="Invalid chat document"):
            store.open("bad")

    @pytest.mark.parametrize("chat_id", ["../escape", "a/b", ".hidden", ""])
    def test_unsafe_ids_rejected(self, store: ChatStore, chat_id: str) -> None:
        with pytest.raises(StoreError, match="Invalid chat id"):
            store.path_for(chat_id)


class TestSave:
    def test_pretty_json_with_trailing_newline(self, store: ChatStore) -> None:
        state = store.open("demo", model_name="m")
        assert store.save("demo", state) is True
        text = store.path_for("demo").read_text()
        assert text.endswith("}\n")
        assert '\n  "model": "m"' in text
        assert state.dirty is False

    def test_clean_chat_not_rewritten(self, store: ChatStore) -> None:
        state = store.open("demo", model_name="m")
        store.save("demo", state)
        path = store.path_for("demo")
        path.write_text(path.read_text() + " ")

        reopened = store.open("demo")
        assert store.save("demo", reopened) is False
        assert path.read_text().endswith("\n ")

    def test_unknown_keys_preserved(self, store: ChatStore) -> None:
        doc = {"model": "m", "messages": [], "seed": 7}
        store.path_for("extra").write_text(json.dumps(doc))
        state = store.open("extra")
        state.append_normal("user", "hi")
        store.save("extra", state)
        saved = json.loads(store.path_for("extra").read_text())
        assert saved["seed"] == 7
        assert saved["messages"] == [{"role": "user", "content": "hi"}]
