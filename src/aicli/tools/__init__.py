"""Local tools the model can call, and the dispatcher that routes to them."""

from aicli.tools.buffer import BoundedLineBuffer, TimedLine
from aicli.tools.dispatcher import ToolDispatcher, parse_arguments
from aicli.tools.executor import CommandExecutor, ExecutionResult
from aicli.tools.todo import TodoStore

__all__ = [
    "BoundedLineBuffer",
    "CommandExecutor",
    "ExecutionResult",
    "TimedLine",
    "TodoStore",
    "ToolDispatcher",
    "parse_arguments",
]
