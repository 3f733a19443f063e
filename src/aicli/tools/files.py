"""File tools: read, write, exact-string edits and SEARCH/REPLACE blocks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from aicli.errors import ToolError

logger = logging.getLogger(__name__)

#: Hard cap on lines returned by a single ``read`` call.
_MAX_READ_LINES = 1000

_SEARCH_MARKER = "<<<<<<< SEARCH"
_DIVIDER_MARKER = "======="
_REPLACE_MARKER = ">>>>>>> REPLACE"


class FileToolError(ToolError):
    """A file tool could not complete."""


# ------------------------------------------------------------------ #
# Argument models
# ------------------------------------------------------------------ #


class WriteArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str
    content: str
    append: bool = False


class WriteFileArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str
    content: str
    overwrite: bool = False


class ReadArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str
    show_line_numbers: bool = False
    offset: int = Field(default=1, description="1-based first line")
    limit: int | None = None


class EditArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str
    old_string: str
    new_string: str


class EditOperation(BaseModel):
    old_string: str
    new_string: str


class MultiEditArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str
    edits: list[EditOperation]


class SearchReplaceArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file_path: str
    content: str


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _resolve(path_str: str, working_dir: Path) -> Path:
    """Resolve *path_str* against *working_dir* (absolute paths pass through)."""
    expanded = Path(path_str).expanduser()
    if expanded.is_absolute():
        return expanded
    return working_dir / expanded


def _read_text(path: Path, shown: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read '{shown}': {exc.strerror or exc}"
        raise FileToolError(msg) from exc


def _write_text(path: Path, shown: str, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot write '{shown}': {exc.strerror or exc}"
        raise FileToolError(msg) from exc


# ------------------------------------------------------------------ #
# Tool implementations
# ------------------------------------------------------------------ #


def write(args: WriteArgs, working_dir: Path) -> str:
    """Write (or append) ``content`` to ``path``."""
    path = _resolve(args.path, working_dir)
    try:
        with path.open("a" if args.append else "w", encoding="utf-8") as fh:
            fh.write(args.content)
    except OSError as exc:
        msg = f"Cannot write '{args.path}': {exc.strerror or exc}"
        raise FileToolError(msg) from exc
    return f"{len(args.content.encode('utf-8'))} bytes written"


def write_file(args: WriteFileArgs, working_dir: Path) -> str:
    """Create a file (and its parents); refuses to clobber unless asked."""
    path = _resolve(args.path, working_dir)
    if path.exists() and not args.overwrite:
        msg = (
            f"File '{args.path}' already exists. "
            "Set overwrite=true to overwrite it."
        )
        raise FileToolError(msg)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        msg = f"Failed to create parent directories: {exc}"
        raise FileToolError(msg) from exc
    _write_text(path, args.path, args.content)
    return f"Written {len(args.content.encode('utf-8'))} bytes to {args.path}"


def read(args: ReadArgs, working_dir: Path) -> str:
    """Return a window of lines, optionally numbered, capped at 1000 lines."""
    if args.offset < 1:
        msg = "offset must be >= 1"
        raise FileToolError(msg)

    content = _read_text(_resolve(args.path, working_dir), args.path)
    lines = content.splitlines()

    start = args.offset - 1
    count = _MAX_READ_LINES if args.limit is None else min(args.limit, _MAX_READ_LINES)
    window = lines[start : start + count]

    if args.show_line_numbers:
        rendered = [f"{start + i + 1}: {line}" for i, line in enumerate(window)]
    else:
        rendered = window
    return "".join(f"{line}\n" for line in rendered)


def edit(args: EditArgs, working_dir: Path) -> str:
    """Replace the first occurrence of ``old_string``."""
    path = _resolve(args.path, working_dir)
    content = _read_text(path, args.path)
    if args.old_string not in content:
        msg = f"Edit failed: string '{args.old_string}' not found"
        raise FileToolError(msg)
    _write_text(path, args.path, content.replace(args.old_string, args.new_string, 1))
    return "Edit applied successfully"


def multiedit(args: MultiEditArgs, working_dir: Path) -> str:
    """Apply every edit in order, or none of them."""
    path = _resolve(args.path, working_dir)
    content = _read_text(path, args.path)
    for op in args.edits:
        if op.old_string not in content:
            msg = f"Edit failed: string '{op.old_string}' not found"
            raise FileToolError(msg)
        content = content.replace(op.old_string, op.new_string, 1)
    _write_text(path, args.path, content)
    return f"Applied {len(args.edits)} edits successfully"


@dataclass(frozen=True)
class SearchReplaceBlock:
    search: str
    replace: str


def parse_blocks(content: str) -> list[SearchReplaceBlock]:
    """Split *content* into SEARCH/REPLACE blocks.

    Raises:
        FileToolError: On a block missing its divider or end marker, or if
            no blocks are present at all.
    """
    blocks: list[SearchReplaceBlock] = []
    remaining = content
    while (start := remaining.find(_SEARCH_MARKER)) != -1:
        after = remaining[start + len(_SEARCH_MARKER) :]
        divider = after.find(_DIVIDER_MARKER)
        if divider == -1:
            msg = f"Missing {_DIVIDER_MARKER} separator"
            raise FileToolError(msg)
        end = after.find(_REPLACE_MARKER)
        if end == -1 or end < divider:
            msg = f"Missing {_REPLACE_MARKER}"
            raise FileToolError(msg)

        search = after[:divider].lstrip("\n")
        replace = after[divider + len(_DIVIDER_MARKER) : end].lstrip("\n")
        blocks.append(SearchReplaceBlock(search=search, replace=replace))
        remaining = after[end + len(_REPLACE_MARKER) :]

    if not blocks:
        msg = "No SEARCH/REPLACE blocks found"
        raise FileToolError(msg)
    return blocks


def search_replace(args: SearchReplaceArgs, working_dir: Path) -> str:
    """Apply SEARCH/REPLACE blocks to ``file_path`` and return a report."""
    blocks = parse_blocks(args.content)
    path = _resolve(args.file_path, working_dir)
    file_content = _read_text(path, args.file_path)

    lines_changed = 0
    warnings: list[str] = []
    for block in blocks:
        if block.search not in file_content:
            msg = f"SEARCH block not found in file:\n{block.search}"
            raise FileToolError(msg)
        search_lines = len(block.search.splitlines())
        replace_lines = len(block.replace.splitlines())
        if search_lines != replace_lines:
            warnings.append(
                f"Line count changed from {search_lines} to {replace_lines}"
            )
        lines_changed += search_lines
        file_content = file_content.replace(block.search, block.replace, 1)

    _write_text(path, args.file_path, file_content)
    logger.debug("Applied %d block(s) to %s", len(blocks), args.file_path)

    return (
        f"file: {args.file_path}\n"
        f"blocks_applied: {len(blocks)}\n"
        f"lines_changed: {lines_changed}\n"
        f"content:\n{args.content.rstrip()}\n"
        f"warnings: {'; '.join(warnings) if warnings else 'none'}\n"
    )
