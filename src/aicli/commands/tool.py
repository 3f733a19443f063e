"""aicli tool -- run one tool directly, outside any conversation."""

from __future__ import annotations

import asyncio

import click

from aicli.commands.common import (
    build_dispatcher,
    config_option,
    fail,
    load_settings,
    read_text_argument,
)
from aicli.errors import AicliError


@click.command()
@click.argument("name")
@click.argument("arguments", required=False, default="{}")
@config_option
def tool(name: str, arguments: str, config_file: str | None) -> None:
    """Dispatch tool NAME with JSON ARGUMENTS and print the result.

    ARGUMENTS may be '@FILE' or '-' (stdin) like a chat message.
    """
    config = load_settings(config_file)
    payload = read_text_argument(arguments)
    dispatcher = build_dispatcher(config)
    try:
        result = asyncio.run(dispatcher.dispatch(name, payload))
    except AicliError as exc:
        fail(exc)
    finally:
        dispatcher.close()
    click.echo(result)
