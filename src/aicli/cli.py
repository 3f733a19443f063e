"""Root CLI group and version flag."""

import logging
import signal

import click

from aicli import __version__
from aicli.commands.chat import chat
from aicli.commands.init import init
from aicli.commands.jsonset import json_set
from aicli.commands.prompt import prompt
from aicli.commands.tool import tool

# Ensure SIGPIPE doesn't raise when stdout is piped into `head` and closed.
if hasattr(signal, "SIGPIPE"):
    signal.signal(signal.SIGPIPE, signal.SIG_IGN)


@click.group()
@click.version_option(version=__version__, prog_name="aicli")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """aicli: chat-completion client with local tools."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


cli.add_command(init)
cli.add_command(chat)
cli.add_command(tool)
cli.add_command(prompt)
cli.add_command(json_set)
