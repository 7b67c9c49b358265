"""
jsontext.py - JSON text to Python objects without recursion.

``json.loads`` descends one C stack frame per nesting level and gives up at
the interpreter recursion limit.  Attribute trees nest a few JSON levels per
sequence, so a deep but valid payload would be rejected.  loads() reads the
same grammar with an explicit stack of open containers and reuses the
tokenizers of the json module for strings and numbers, so values and error
types (json.JSONDecodeError) match ``json.loads``.
"""

import re
from json import JSONDecodeError
from json.decoder import scanstring
from json.scanner import NUMBER_RE
from typing import Any

_WHITESPACE = re.compile(r"[ \t\n\r]*")

_CONSTANTS = [
    ("null", None),
    ("true", True),
    ("false", False),
    ("NaN", float("nan")),
    ("Infinity", float("inf")),
    ("-Infinity", float("-inf")),
]


def _skip(text: str, idx: int) -> int:
    return _WHITESPACE.match(text, idx).end()


def _scalar(text: str, idx: int) -> tuple[Any, int]:
    match = NUMBER_RE.match(text, idx)
    if match:
        integer, frac, exp = match.groups()
        try:
            if frac or exp:
                return float(integer + (frac or "") + (exp or "")), match.end()
            return int(integer), match.end()
        except ValueError as exc:
            raise JSONDecodeError(str(exc), text, idx) from exc
    for literal, value in _CONSTANTS:
        if text.startswith(literal, idx):
            return value, idx + len(literal)
    raise JSONDecodeError("Expecting value", text, idx)


def _key(text: str, idx: int) -> tuple[str, int]:
    """Read ``"name" :`` and return the name and the index of its value."""
    if not text.startswith('"', idx):
        raise JSONDecodeError("Expecting property name enclosed in double quotes", text, idx)
    key, idx = scanstring(text, idx + 1, True)
    idx = _skip(text, idx)
    if not text.startswith(":", idx):
        raise JSONDecodeError("Expecting ':' delimiter", text, idx)
    return key, _skip(text, idx + 1)


def loads(text: str) -> Any:
    """
    Parse a JSON document, accepting any nesting depth.

    Raises
    ------
    json.JSONDecodeError
        On malformed input, at the same positions ``json.loads`` reports.
    """
    # Each frame is [open container, key awaiting its value (objects only)]
    stack: list[list] = []
    idx = _skip(text, 0)

    while True:
        if text.startswith("{", idx):
            idx = _skip(text, idx + 1)
            if not text.startswith("}", idx):
                key, idx = _key(text, idx)
                stack.append([{}, key])
                continue
            value, idx = {}, idx + 1
        elif text.startswith("[", idx):
            idx = _skip(text, idx + 1)
            if not text.startswith("]", idx):
                stack.append([[], None])
                continue
            value, idx = [], idx + 1
        elif text.startswith('"', idx):
            value, idx = scanstring(text, idx + 1, True)
        else:
            value, idx = _scalar(text, idx)

        # Store the value, then close every container that ends right after it
        while True:
            if not stack:
                end = _skip(text, idx)
                if end != len(text):
                    raise JSONDecodeError("Extra data", text, end)
                return value

            frame = stack[-1]
            container = frame[0]
            if isinstance(container, dict):
                container[frame[1]] = value
                closer = "}"
            else:
                container.append(value)
                closer = "]"

            idx = _skip(text, idx)
            if text.startswith(",", idx):
                idx = _skip(text, idx + 1)
                if isinstance(container, dict):
                    frame[1], idx = _key(text, idx)
                break
            if text.startswith(closer, idx):
                stack.pop()
                value, idx = container, idx + 1
                continue
            raise JSONDecodeError("Expecting ',' delimiter", text, idx)
