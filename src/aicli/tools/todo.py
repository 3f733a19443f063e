"""Todo-list tools backed by a small SQLite database."""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from aicli.errors import ToolArgumentError, ToolError

logger = logging.getLogger(__name__)

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS tasks "
    "(list_name TEXT, task TEXT, completed INTEGER DEFAULT 0);"
)


class TodoError(ToolError):
    """A todo operation changed no rows, or more rows than expected."""


class TodoRequest(BaseModel):
    """Arguments shared by every todo tool; which fields are needed varies."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    task: str | None = None

    def require(self, field: str, function_name: str) -> str:
        value = getattr(self, field)
        if value is None:
            msg = f"Missing '{field}' for {function_name}"
            raise ToolArgumentError(msg)
        return str(value)


class TodoStore:
    """Named todo lists of tasks, each task completed or not.

    Only completed tasks may be deleted.  Updates that would touch more than
    one row are rolled back.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = str(path)
        self._conn = sqlite3.connect(self._path)
        with self._conn:
            self._conn.execute(_SCHEMA)

    def close(self) -> None:
        self._conn.close()

    def add_task(self, name: str, task: str) -> str:
        with self._conn:
            self._conn.execute(
                "INSERT INTO tasks (list_name, task, completed) VALUES (?, ?, 0);",
                (name, task),
            )
        logger.debug("Added task %r to list %r", task, name)
        return f"Task '{task}' added to list '{name}'"

    def lists(self) -> str:
        rows = self._conn.execute("SELECT DISTINCT list_name FROM tasks;").fetchall()
        return json.dumps([row[0] for row in rows if row[0] is not None])

    def tasks(self, name: str) -> str:
        rows = self._conn.execute(
            "SELECT task, completed FROM tasks WHERE list_name = ?;",
            (name,),
        ).fetchall()
        return json.dumps(
            [{"task": task, "completed": completed == 1} for task, completed in rows]
        )

    def complete_task(self, name: str, task: str, complete: bool = True) -> str:
        with self._conn:
            cursor = self._conn.execute(
                "UPDATE tasks SET completed = ? WHERE list_name = ? AND task = ?;",
                (1 if complete else 0, name, task),
            )
            if cursor.rowcount == 0:
                msg = "Task list not updated, perhaps the task does not exist?"
                raise TodoError(msg)
            if cursor.rowcount > 1:
                msg = (
                    "More than one task matched, this is not normally a good "
                    "thing; nothing was changed"
                )
                raise TodoError(msg)
        return "Success"

    def delete_task(self, name: str, task: str) -> str:
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM tasks WHERE list_name = ? AND task = ? AND completed = 1;",
                (name, task),
            )
            if cursor.rowcount == 0:
                msg = (
                    "Task list not updated: only completed tasks may be "
                    "deleted from the todo list"
                )
                raise TodoError(msg)
            if cursor.rowcount > 1:
                msg = (
                    "More than one task matched, this is not normally a good "
                    "thing; nothing was deleted"
                )
                raise TodoError(msg)
        return "Success"
