"""Set a value inside a JSON document addressed by a dotted path.

Paths look like ``parent.child[0].key``: dot-separated object keys, each
optionally followed by one or more ``[index]`` array subscripts.  Every
step but the last must already exist; the final key is inserted or
overwritten, while a final index must be in range.
"""

from __future__ import annotations

import json
import re
from typing import Any

from aicli.errors import AicliError

_SEGMENT_RE = re.compile(r"^([^\[\]]*)((?:\[\d+\])*)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")


class JsonPathError(AicliError):
    """A path did not match the shape of the document."""


def parse_path(path: str) -> list[str | int]:
    """Split *path* into object keys (``str``) and array indices (``int``)."""
    if not path:
        msg = "Empty path"
        raise JsonPathError(msg)

    steps: list[str | int] = []
    for part in path.split("."):
        match = _SEGMENT_RE.match(part)
        if match is None:
            msg = f"Invalid path segment '{part}'"
            raise JsonPathError(msg)
        key, subscripts = match.groups()
        if key:
            steps.append(key)
        elif not subscripts:
            msg = f"Empty key in path '{path}'"
            raise JsonPathError(msg)
        steps.extend(int(i) for i in _INDEX_RE.findall(subscripts))
    return steps


def set_path(document: Any, path: str, value: Any) -> Any:
    """Set *value* at *path* inside *document* (mutated in place) and return it.

    Raises:
        JsonPathError: If an intermediate step is missing, has the wrong
            type, or an index is out of bounds.
    """
    steps = parse_path(path)
    current = document
    for step in steps[:-1]:
        current = _descend(current, step)

    last = steps[-1]
    if isinstance(last, int):
        if not isinstance(current, list):
            msg = f"Expected array at index [{last}]"
            raise JsonPathError(msg)
        if last >= len(current):
            msg = f"Index {last} out of bounds"
            raise JsonPathError(msg)
        current[last] = value
    else:
        if not isinstance(current, dict):
            msg = f"Expected object at path '{last}'"
            raise JsonPathError(msg)
        current[last] = value
    return document


def _descend(node: Any, step: str | int) -> Any:
    if isinstance(step, int):
        if not isinstance(node, list):
            msg = f"Expected array at index [{step}]"
            raise JsonPathError(msg)
        if step >= len(node):
            msg = f"Index {step} out of bounds"
            raise JsonPathError(msg)
        return node[step]

    if not isinstance(node, dict):
        msg = f"Expected object at path '{step}'"
        raise JsonPathError(msg)
    if step not in node:
        msg = f"Key '{step}' not found in JSON"
        raise JsonPathError(msg)
    return node[step]


def parse_value(text: str) -> Any:
    """Decode *text* as JSON, falling back to the literal string."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text
