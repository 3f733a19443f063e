"""aicli json-set -- set a value inside a JSON document."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from aicli.commands.common import fail, read_text_argument
from aicli.jsonpath import JsonPathError, parse_value, set_path


@click.command("json-set")
@click.argument("file")
@click.argument("path")
@click.argument("value")
@click.option(
    "-i",
    "--in-place",
    is_flag=True,
    help="Rewrite FILE instead of printing the result.",
)
def json_set(file: str, path: str, value: str, in_place: bool) -> None:
    """Set PATH (e.g. parent.child[0].key) in FILE to VALUE.

    FILE may be '-' for stdin.  VALUE is parsed as JSON when possible and
    otherwise taken as a string; '@FILE' and '-' read it from a file or
    stdin.
    """
    if file == "-" and value == "-":
        raise click.UsageError("FILE and VALUE cannot both be read from stdin.")
    if file == "-" and in_place:
        raise click.UsageError("--in-place needs a real FILE, not stdin.")

    new_value = parse_value(read_text_argument(value))
    source = sys.stdin.read() if file == "-" else _read(Path(file))
    try:
        document = json.loads(source)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid JSON in {file}: {exc}") from exc

    try:
        set_path(document, path, new_value)
    except JsonPathError as exc:
        fail(exc)

    rendered = json.dumps(document, indent=2, ensure_ascii=False)
    if in_place:
        Path(file).write_text(rendered + "\n", encoding="utf-8")
    else:
        click.echo(rendered)


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot read {path}: {exc.strerror or exc}") from exc
