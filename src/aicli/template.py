"""``{{KEY}}`` placeholder substitution for prompt templates."""

from __future__ import annotations

import getpass
import os
import re
from datetime import UTC, datetime
from pathlib import Path

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


class TemplateProcessor:
    """Replaces ``{{KEY}}`` with registered values; unknown keys stay as-is."""

    def __init__(self, replacements: dict[str, str] | None = None) -> None:
        self._replacements: dict[str, str] = dict(replacements or {})

    def add_replacement(self, key: str, value: str) -> None:
        self._replacements[key] = value

    def process(self, text: str) -> str:
        def _substitute(match: re.Match[str]) -> str:
            return self._replacements.get(match.group(1), match.group(0))

        return _PLACEHOLDER_RE.sub(_substitute, text)


def default_replacements(cwd: Path | None = None) -> dict[str, str]:
    """Values available to every system prompt: PWD, DATE and USER."""
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = os.environ.get("USER", "")
    return {
        "PWD": str(cwd or Path.cwd()),
        "DATE": datetime.now(UTC).strftime("%Y-%m-%d"),
        "USER": user,
    }


def render_file(path: Path, replacements: dict[str, str] | None = None) -> str:
    """Read *path* and substitute the default replacements plus any extras."""
    processor = TemplateProcessor(default_replacements())
    for key, value in (replacements or {}).items():
        processor.add_replacement(key, value)
    return processor.process(path.read_text(encoding="utf-8"))
