"""aicli prompt -- render the system prompt template."""

from __future__ import annotations

from pathlib import Path

import click

from aicli.commands.common import config_option, load_settings
from aicli.template import TemplateProcessor, default_replacements

DEFAULT_TEMPLATE = "SYSTEM_PROMPT.md"


@click.command()
@click.argument("template", required=False, type=click.Path(dir_okay=False))
@click.option(
    "-s",
    "--set",
    "extra",
    multiple=True,
    metavar="KEY=VALUE",
    help="Additional replacement (repeatable).",
)
@config_option
def prompt(template: str | None, extra: tuple[str, ...], config_file: str | None) -> None:
    """Print TEMPLATE with {{PWD}}, {{DATE}} and {{USER}} filled in.

    TEMPLATE defaults to SYSTEM_PROMPT.md in the configured data directory.
    """
    if template is None:
        config = load_settings(config_file)
        path = Path(config.config_dir) / DEFAULT_TEMPLATE
    else:
        path = Path(template)

    processor = TemplateProcessor(default_replacements())
    for item in extra:
        key, sep, value = item.partition("=")
        if not sep or not key:
            msg = f"Expected KEY=VALUE, got {item!r}"
            raise click.BadParameter(msg, param_hint="--set")
        processor.add_replacement(key, value)

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise click.ClickException(f"Cannot read {path}: {exc.strerror or exc}") from exc
    click.echo(processor.process(text), nl=False)
