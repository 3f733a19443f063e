"""aicli chat -- append a message to a chat and ask the model for a reply."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import click

from aicli.api import ChatEndpoint, EndpointSettings, resolve_endpoint
from aicli.commands.common import (
    build_dispatcher,
    config_option,
    fail,
    load_settings,
    read_text_argument,
)
from aicli.config import AicliConfig
from aicli.conversation import ChatStore, ConversationState
from aicli.errors import AicliError, ConfigError
from aicli.template import render_file
from aicli.tools.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_FILE = "SYSTEM_PROMPT.md"


@click.command()
@click.argument("chat_id")
@click.argument("message", required=False)
@click.option(
    "--role",
    type=click.Choice(["system", "user", "assistant", "tool"]),
    default="user",
    show_default=True,
    help="Role of the appended message.",
)
@click.option("--config-dir", type=click.Path(file_okay=False), default=None,
              help="Directory holding empty_chat.json and SYSTEM_PROMPT.md.")
@click.option("--chats-dir", type=click.Path(file_okay=False), default=None,
              help="Directory holding the chat documents.")
@click.option("--write-req-resp", is_flag=True,
              help="Write last_request.json and last_response.json.")
@click.option("--dump", is_flag=True, help="Print the chat and exit.")
@click.option("--name", default=None, help="Function name when --role is tool.")
@click.option(
    "--tool-call-id",
    default=None,
    help="Tool call being answered (default: oldest unanswered call).",
)
@click.option("--no-network", is_flag=True, help="Append only; do not call the API.")
@click.option(
    "--run-tools",
    is_flag=True,
    help="Run requested tools locally and resubmit until the model stops asking.",
)
@click.option(
    "--system-prompt",
    is_flag=True,
    help=f"Re-render {SYSTEM_PROMPT_FILE} into the leading system message.",
)
@config_option
def chat(
    chat_id: str,
    message: str | None,
    role: str,
    config_dir: str | None,
    chats_dir: str | None,
    write_req_resp: bool,
    dump: bool,
    name: str | None,
    tool_call_id: str | None,
    no_network: bool,
    run_tools: bool,
    system_prompt: bool,
    config_file: str | None,
) -> None:
    """Add MESSAGE to chat CHAT_ID and print the assistant's reply.

    MESSAGE may be '@FILE' to send a file's contents or '-' to read stdin.
    Without MESSAGE nothing is appended before the request.
    """
    if role == "tool" and name is None:
        msg = "When adding a message as a tool role a function name is required (--name)."
        raise click.UsageError(msg)
    if name is not None and role != "tool":
        msg = "--name is only valid together with --role tool."
        raise click.UsageError(msg)

    config = load_settings(config_file)
    config = _apply_overrides(config, config_dir, chats_dir, write_req_resp)
    text = read_text_argument(message)

    try:
        settings = _endpoint_settings(offline=no_network or dump)
        store = ChatStore(Path(config.config_dir), Path(config.chats_dir))
        state = store.open(
            chat_id,
            model_name=settings.model_name if settings else None,
            endpoint=(
                ChatEndpoint.from_settings(settings, timeout=config.request_timeout)
                if settings
                else None
            ),
            capture_dir=Path.cwd() if config.write_req_resp else None,
        )

        if dump:
            for entry in state.messages:
                click.echo(entry.human_readable())
            return

        if system_prompt:
            prompt_path = Path(config.config_dir) / SYSTEM_PROMPT_FILE
            state.set_system_prompt(_render_prompt(prompt_path))

        if name is not None:
            state.append_tool_response(role, name, tool_call_id, text)
        elif text:
            state.append_normal(role, text)
        store.save(chat_id, state)

        if no_network:
            click.echo("Message appended (no network)")
            return

        dispatcher = build_dispatcher(config) if run_tools else None
        try:
            asyncio.run(
                _converse(store, chat_id, state, dispatcher, config.max_tool_rounds)
            )
        finally:
            if dispatcher is not None:
                dispatcher.close()
    except AicliError as exc:
        fail(exc)


def _apply_overrides(
    config: AicliConfig,
    config_dir: str | None,
    chats_dir: str | None,
    write_req_resp: bool,
) -> AicliConfig:
    updates: dict[str, object] = {}
    if config_dir is not None:
        updates["config_dir"] = config_dir
    if chats_dir is not None:
        updates["chats_dir"] = chats_dir
    if write_req_resp:
        updates["write_req_resp"] = True
    return config.model_copy(update=updates) if updates else config


def _endpoint_settings(offline: bool) -> EndpointSettings | None:
    """Resolve the endpoint; offline invocations tolerate its absence."""
    try:
        return resolve_endpoint(os.environ)
    except ConfigError:
        if offline:
            logger.debug("No endpoint configured; continuing offline")
            return None
        raise


def _render_prompt(path: Path) -> str:
    try:
        return render_file(path)
    except OSError as exc:
        msg = f"Cannot read system prompt template {path}: {exc.strerror or exc}"
        raise ConfigError(msg) from exc


async def _converse(
    store: ChatStore,
    chat_id: str,
    state: ConversationState,
    dispatcher: ToolDispatcher | None,
    max_rounds: int,
) -> None:
    """Submit a turn; with a dispatcher, keep answering tool calls.

    The chat is saved after every step that succeeds, so a failure part
    way through loses nothing already received.
    """
    reply = await state.submit_turn()
    store.save(chat_id, state)
    click.echo(reply.human_readable())

    if dispatcher is None:
        return

    rounds = 0
    while state.oldest_pending_tool_call_id() is not None:
        if rounds >= max_rounds:
            click.echo(
                f"Stopping after {max_rounds} tool rounds; "
                "tool calls are still pending.",
                err=True,
            )
            return
        rounds += 1

        while (result := await dispatcher.run_pending(state)) is not None:
            click.echo(f"# tool\n{result}")
        store.save(chat_id, state)

        reply = await state.submit_turn()
        store.save(chat_id, state)
        click.echo(reply.human_readable())
