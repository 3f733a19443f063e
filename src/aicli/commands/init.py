"""aicli init -- scaffold config, chat template and prompt in the current directory."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

CONFIG_FILENAME = "aicli.yaml"
ENV_EXAMPLE_FILENAME = ".env.example"

TEMPLATE_YAML = """\
# aicli configuration -- every setting is optional.

# Directory with empty_chat.json and SYSTEM_PROMPT.md
config_dir: data

# One <chat_id>.json per conversation
chats_dir: chats

# SQLite file used by the todo tools
todo_db: todolist.sqlite3

# Write last_request.json / last_response.json on every call
write_req_resp: false

# HTTP timeout in seconds
request_timeout: 600

# Upper bound on tool round-trips for `aicli chat --run-tools`
max_tool_rounds: 20

# Limits for the `execute` tool
executor:
  timeout: 120      # seconds before SIGTERM
  grace: 1          # seconds between SIGTERM and SIGKILL
  max_lines: 128    # output lines kept (oldest dropped first)
  max_line_len: 256 # characters kept per line
"""

TEMPLATE_ENV_EXAMPLE = """\
# Endpoint credentials. Copy this file to .env and fill in one block.
#
# Azure OpenAI (takes precedence when all three are set):
AZURE_API_KEY=
AZURE_API_BASE=
AZURE_API_VERSION=

# Any OpenAI-compatible server:
OAICOMPAT_API_KEY=
OAICOMPAT_API_BASE=
OAICOMPAT_MODEL_NAME=
"""

TEMPLATE_SYSTEM_PROMPT = """\
You are a careful software assistant working in {{PWD}} for {{USER}}.
Today is {{DATE}}.

Use the tools provided to inspect and change files, keep a todo list of
your plan, and run shell commands. Ask one tool call at a time and wait
for its result before continuing.
"""


def _function(name: str, description: str, properties: dict[str, Any],
              required: list[str]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": required,
            },
        },
    }


_STR = {"type": "string"}
_TODO = {"name": {"type": "string", "description": "Todo list name"},
         "task": {"type": "string", "description": "Task text"}}

TOOL_SCHEMAS: list[dict[str, Any]] = [
    _function("read", "Read a text file, optionally a window of lines.",
              {"path": _STR, "show_line_numbers": {"type": "boolean"},
               "offset": {"type": "integer"}, "limit": {"type": "integer"}},
              ["path"]),
    _function("write", "Write or append text to a file.",
              {"path": _STR, "content": _STR, "append": {"type": "boolean"}},
              ["path", "content"]),
    _function("write_file", "Create a file; refuses to overwrite unless asked.",
              {"path": _STR, "content": _STR, "overwrite": {"type": "boolean"}},
              ["path", "content"]),
    _function("edit", "Replace the first occurrence of old_string.",
              {"path": _STR, "old_string": _STR, "new_string": _STR},
              ["path", "old_string", "new_string"]),
    _function("multiedit", "Apply several edits to one file, all or nothing.",
              {"path": _STR,
               "edits": {"type": "array", "items": {
                   "type": "object",
                   "properties": {"old_string": _STR, "new_string": _STR},
                   "required": ["old_string", "new_string"]}}},
              ["path", "edits"]),
    _function("search_replace", "Apply SEARCH/REPLACE blocks to a file.",
              {"file_path": _STR, "content": _STR},
              ["file_path", "content"]),
    _function("add_todo_task", "Add a task to a todo list.", _TODO, ["name", "task"]),
    _function("complete_todo_task", "Mark a task complete.", _TODO, ["name", "task"]),
    _function("delete_todo_task", "Delete a completed task.", _TODO, ["name", "task"]),
    _function("get_todo_lists", "List the names of all todo lists.", {}, []),
    _function("get_todo_tasks", "List the tasks of one todo list.",
              {"name": _TODO["name"]}, ["name"]),
    _function("execute", "Run a shell command and return its recent output.",
              {"command": _STR}, ["command"]),
]


def empty_chat_document() -> dict[str, Any]:
    """The template every new chat starts from."""
    return {
        "model": "",
        "messages": [{"role": "system", "content": "You are a helpful assistant."}],
        "tools": TOOL_SCHEMAS,
        "max_tokens": 4096,
        "temperature": 1.0,
        "frequency_penalty": 0,
        "presence_penalty": 0,
        "top_p": 1.0,
        "stop": None,
    }


@click.command()
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing files.",
)
def init(force: bool) -> None:
    """Scaffold an aicli project in the current directory."""
    cwd = Path.cwd()
    data_dir = cwd / "data"
    chats_dir = cwd / "chats"

    if (cwd / CONFIG_FILENAME).exists() and not force:
        raise click.ClickException(
            f"{CONFIG_FILENAME} already exists. Use --force to overwrite."
        )

    try:
        data_dir.mkdir(exist_ok=True)
        chats_dir.mkdir(exist_ok=True)
    except OSError as exc:
        raise click.ClickException(f"Cannot create directories: {exc}") from exc

    chat_template = json.dumps(empty_chat_document(), indent=2) + "\n"
    _write(cwd / CONFIG_FILENAME, TEMPLATE_YAML, force=True)
    _write(cwd / ENV_EXAMPLE_FILENAME, TEMPLATE_ENV_EXAMPLE, force)
    _write(data_dir / "empty_chat.json", chat_template, force)
    _write(data_dir / "SYSTEM_PROMPT.md", TEMPLATE_SYSTEM_PROMPT, force)
    click.echo(f"  Created {chats_dir.name}/")

    click.echo()
    click.echo("Next steps:")
    click.echo("  1. Copy .env.example to .env and add your endpoint credentials")
    click.echo("  2. Run `aicli chat demo --system-prompt \"Hello\"` to start a chat")


def _write(path: Path, content: str, force: bool) -> None:
    shown = path.relative_to(Path.cwd())
    if path.exists() and not force:
        click.echo(f"  Skipped {shown} (already exists)")
        return
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot write {shown}: {exc}") from exc
    click.echo(f"  Created {shown}")
