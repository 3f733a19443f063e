"""Helpers shared by the aicli subcommands."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import click

from aicli.config import AicliConfig, load_config
from aicli.errors import AicliError, ConfigError, SpawnError
from aicli.tools.dispatcher import ToolDispatcher
from aicli.tools.executor import CommandExecutor

#: Largest message accepted on stdin.
MAX_STDIN_BYTES = 32_768

config_option = click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file path (default: ./aicli.yaml if present).",
)


def fail(exc: AicliError) -> NoReturn:
    """Report *exc* on stderr and exit 1."""
    label = "Fatal" if isinstance(exc, SpawnError) else "Error"
    click.echo(f"{label}: {exc}", err=True)
    raise SystemExit(1) from exc


def load_settings(config_file: str | None) -> AicliConfig:
    try:
        return load_config(Path(config_file) if config_file else None)
    except ConfigError as exc:
        fail(exc)


def read_text_argument(value: str | None) -> str:
    """Expand a message-style argument.

    ``@path`` reads that file, ``-`` reads stdin (at most
    :data:`MAX_STDIN_BYTES`), anything else is used verbatim and ``None``
    becomes an empty string.
    """
    if value is None:
        return ""
    if value == "-":
        return _read_stdin()
    if value.startswith("@"):
        path = Path(value[1:])
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            msg = f"Cannot read {path}: {exc.strerror or exc}"
            raise click.BadParameter(msg) from exc
    return value


def _read_stdin() -> str:
    data = sys.stdin.buffer.read(MAX_STDIN_BYTES + 1)
    if len(data) > MAX_STDIN_BYTES:
        msg = f"Input on stdin exceeds {MAX_STDIN_BYTES} bytes"
        raise click.BadParameter(msg)
    return data.decode("utf-8", errors="replace")


def build_dispatcher(config: AicliConfig, working_dir: Path | None = None) -> ToolDispatcher:
    executor = CommandExecutor(
        timeout=config.executor.timeout,
        grace=config.executor.grace,
        max_lines=config.executor.max_lines,
        max_line_len=config.executor.max_line_len,
    )
    return ToolDispatcher(
        executor=executor,
        todo_path=Path(config.todo_db),
        working_dir=working_dir,
    )
