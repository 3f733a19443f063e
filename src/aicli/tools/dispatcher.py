"""Tool dispatch -- route a tool call to its handler and answer it."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, ValidationError

from aicli.errors import ToolArgumentError, ToolError, UnknownToolError
from aicli.tools import files
from aicli.tools.executor import CommandExecutor, ExecuteArgs
from aicli.tools.todo import TodoRequest, TodoStore

if TYPE_CHECKING:
    from aicli.conversation.state import ConversationState

logger = logging.getLogger(__name__)

_ArgsT = TypeVar("_ArgsT", bound=BaseModel)

Handler = Callable[[str], Awaitable[str]]


def parse_arguments(model: type[_ArgsT], function_name: str, arguments: str) -> _ArgsT:
    """Decode a tool's JSON argument string into *model*.

    Raises:
        ToolArgumentError: If the text is not JSON or does not fit *model*.
    """
    try:
        return model.model_validate_json(arguments or "{}")
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(s) for s in err['loc']) or 'arguments'}: {err['msg']}"
            for err in exc.errors()
        )
        msg = f"Invalid JSON arguments for {function_name}: {problems}"
        raise ToolArgumentError(msg) from exc


class ToolDispatcher:
    """Maps tool names to handlers and feeds results back into a conversation.

    File tools resolve relative paths against *working_dir*.  The todo
    store is opened lazily on the first todo call.
    """

    def __init__(
        self,
        executor: CommandExecutor | None = None,
        todo_path: Path | None = None,
        working_dir: Path | None = None,
    ) -> None:
        self._executor = executor or CommandExecutor()
        self._todo_path = todo_path or Path("todolist.sqlite3")
        self._todo: TodoStore | None = None
        self._working_dir = working_dir or Path.cwd()

        self._handlers: dict[str, Handler] = {
            "write": self._write,
            "write_file": self._write_file,
            "read": self._read,
            "edit": self._edit,
            "multiedit": self._multiedit,
            "search_replace": self._search_replace,
            "add_todo_task": self._add_todo_task,
            "complete_todo_task": self._complete_todo_task,
            "delete_todo_task": self._delete_todo_task,
            "get_todo_lists": self._get_todo_lists,
            "get_todo_tasks": self._get_todo_tasks,
            "execute": self._execute,
        }

    @property
    def names(self) -> list[str]:
        """Names of every tool this dispatcher can run."""
        return list(self._handlers)

    def close(self) -> None:
        if self._todo is not None:
            self._todo.close()
            self._todo = None

    async def dispatch(self, name: str, arguments: str) -> str:
        """Run tool *name* with its JSON *arguments* and return the result text.

        Raises:
            UnknownToolError: If *name* is not a known tool.
            ToolArgumentError: If *arguments* are malformed.
            ToolError: If the tool itself fails.
            SpawnError: If ``execute`` cannot start a shell.
        """
        handler = self._handlers.get(name)
        if handler is None:
            msg = f"Unknown function: {name}"
            raise UnknownToolError(msg)

        logger.info("Dispatching tool %s", name)
        start = time.monotonic()
        result = await handler(arguments)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("Tool %s finished in %d ms (%d chars)", name, elapsed_ms, len(result))
        return result

    async def run_pending(self, state: ConversationState) -> str | None:
        """Answer the oldest pending tool call in *state*.

        Tool failures are reported to the model as ``Error: ...`` text rather
        than raised; a spawn failure still propagates.  Returns the content
        appended, or ``None`` when nothing was pending.
        """
        tool_call_id = state.oldest_pending_tool_call_id()
        if tool_call_id is None:
            return None
        call = state.lookup_tool_call(tool_call_id)

        try:
            result = await self.dispatch(call.function.name, call.function.arguments)
        except ToolError as exc:
            logger.info("Tool %s failed: %s", call.function.name, exc)
            result = f"Error: {exc}"

        state.append_tool_response("tool", call.function.name, tool_call_id, result)
        return result

    # ------------------------------------------------------------------ #
    # Handlers
    # ------------------------------------------------------------------ #

    async def _write(self, arguments: str) -> str:
        args = parse_arguments(files.WriteArgs, "write", arguments)
        return files.write(args, self._working_dir)

    async def _write_file(self, arguments: str) -> str:
        args = parse_arguments(files.WriteFileArgs, "write_file", arguments)
        return files.write_file(args, self._working_dir)

    async def _read(self, arguments: str) -> str:
        args = parse_arguments(files.ReadArgs, "read", arguments)
        return files.read(args, self._working_dir)

    async def _edit(self, arguments: str) -> str:
        args = parse_arguments(files.EditArgs, "edit", arguments)
        return files.edit(args, self._working_dir)

    async def _multiedit(self, arguments: str) -> str:
        args = parse_arguments(files.MultiEditArgs, "multiedit", arguments)
        return files.multiedit(args, self._working_dir)

    async def _search_replace(self, arguments: str) -> str:
        args = parse_arguments(files.SearchReplaceArgs, "search_replace", arguments)
        return files.search_replace(args, self._working_dir)

    def _todo_store(self) -> TodoStore:
        if self._todo is None:
            self._todo = TodoStore(self._todo_path)
        return self._todo

    async def _add_todo_task(self, arguments: str) -> str:
        args = parse_arguments(TodoRequest, "add_todo_task", arguments)
        name = args.require("name", "add_todo_task")
        task = args.require("task", "add_todo_task")
        return self._todo_store().add_task(name, task)

    async def _complete_todo_task(self, arguments: str) -> str:
        args = parse_arguments(TodoRequest, "complete_todo_task", arguments)
        name = args.require("name", "complete_todo_task")
        task = args.require("task", "complete_todo_task")
        return self._todo_store().complete_task(name, task)

    async def _delete_todo_task(self, arguments: str) -> str:
        args = parse_arguments(TodoRequest, "delete_todo_task", arguments)
        name = args.require("name", "delete_todo_task")
        task = args.require("task", "delete_todo_task")
        return self._todo_store().delete_task(name, task)

    async def _get_todo_lists(self, arguments: str) -> str:
        return self._todo_store().lists()

    async def _get_todo_tasks(self, arguments: str) -> str:
        args = parse_arguments(TodoRequest, "get_todo_tasks", arguments)
        name = args.require("name", "get_todo_tasks")
        return self._todo_store().tasks(name)

    async def _execute(self, arguments: str) -> str:
        args = parse_arguments(ExecuteArgs, "execute", arguments)
        result = await self._executor.execute(args.command)
        return result.to_json()
