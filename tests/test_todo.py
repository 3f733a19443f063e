"""Tests for the SQLite todo store."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

import pytest

from aicli.errors import ToolArgumentError
from aicli.tools.todo import TodoError, TodoRequest, TodoStore


@pytest.fixture
def store(tmp_path: Path) -> Iterator[TodoStore]:
    s = TodoStore(tmp_path / "todo.sqlite3")
    yield s
    s.close()


class TestTodoStore:
    def test_add_and_list(self, store: TodoStore) -> None:
        assert store.add_task("plan", "write tests") == "Task 'write tests' added to list 'plan'"
        assert json.loads(store.lists()) == ["plan"]
        assert json.loads(store.tasks("plan")) == [{"task": "write tests", "completed": False}]

    def test_distinct_list_names(self, store: TodoStore) -> None:
        store.add_task("a", "1")
        store.add_task("a", "2")
        store.add_task("b", "3")
        assert sorted(json.loads(store.lists())) == ["a", "b"]

    def test_complete(self, store: TodoStore) -> None:
        store.add_task("plan", "t")
        assert store.complete_task("plan", "t") == "Success"
        assert json.loads(store.tasks("plan"))[0]["completed"] is True

    def test_complete_missing(self, store: TodoStore) -> None:
        with pytest.raises(TodoError, match="does not exist"):
            store.complete_task("plan", "ghost")

    def test_complete_ambiguous_rolls_back(self, store: TodoStore) -> None:
        store.add_task("plan", "dup")
        store.add_task("plan", "dup")
        with pytest.raises(TodoError, match="More than one"):
            store.complete_task("plan", "dup")
        assert all(not t["completed"] for t in json.loads(store.tasks("plan")))

    def test_delete_requires_completed(self, store: TodoStore) -> None:
        store.add_task("plan", "t")
        with pytest.raises(TodoError, match="only completed"):
            store.delete_task("plan", "t")
        store.complete_task("plan", "t")
        assert store.delete_task("plan", "t") == "Success"
        assert json.loads(store.tasks("plan")) == []

    def test_persists_across_connections(self, tmp_path: Path) -> None:
        path = tmp_path / "p.sqlite3"
        first = TodoStore(path)
        first.add_task("l", "t")
        first.close()
        second = TodoStore(path)
        try:
            assert json.loads(second.lists()) == ["l"]
        finally:
            second.close()


class TestTodoRequest:
    def test_require_present(self) -> None:
        assert TodoRequest(name="n").require("name", "get_todo_tasks") == "n"

    def test_require_missing(self) -> None:
        with pytest.raises(ToolArgumentError, match="Missing 'task' for add_todo_task"):
            TodoRequest(name="n").require("task", "add_todo_task")
