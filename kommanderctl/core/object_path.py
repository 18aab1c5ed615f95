"""Dot/bracket path lookups into decoded JSON bodies."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any

from kommanderctl.core.errors import ExtractionMissError

_TOKEN_RE = re.compile(r"""\[(?:"([^"]*)"|'([^']*)'|(\d+))\]|([^.\[\]]+)|(\.)""")
_MISSING = object()


@lru_cache(maxsize=256)
def parse_path(path: str) -> tuple[str | int, ...]:
    """Split ``data.items[0]["a.b"]`` into ``("data", "items", 0, "a.b")``.

    Raises ExtractionMissError when the path is empty or malformed.
    """
    tokens: list[str | int] = []
    pos = 0
    expect_segment = True
    while pos < len(path):
        match = _TOKEN_RE.match(path, pos)
        if match is None:
            raise ExtractionMissError(f"Malformed path '{path}' at offset {pos}")
        double, single, index, bare, dot = match.groups()
        if dot is not None:
            if expect_segment:
                raise ExtractionMissError(f"Malformed path '{path}' at offset {pos}")
            expect_segment = True
        elif bare is not None:
            if not expect_segment:
                raise ExtractionMissError(f"Malformed path '{path}' at offset {pos}")
            tokens.append(bare)
            expect_segment = False
        elif index is not None:
            tokens.append(int(index))
            expect_segment = False
        else:
            tokens.append(double if double is not None else single)
            expect_segment = False
        pos = match.end()

    if not tokens or expect_segment:
        raise ExtractionMissError(f"Malformed path '{path}'")
    return tuple(tokens)


def _step(container: Any, token: str | int) -> Any:
    if isinstance(container, dict):
        key = str(token)
        return container[key] if key in container else _MISSING
    if isinstance(container, list):
        if isinstance(token, str):
            if not token.isdigit():
                return _MISSING
            token = int(token)
        return container[token] if 0 <= token < len(container) else _MISSING
    return _MISSING


def extract(body: Any, path: str) -> Any:
    """Return the value at ``path`` or raise ExtractionMissError."""
    current = body
    for token in parse_path(path):
        current = _step(current, token)
        if current is _MISSING:
            raise ExtractionMissError(f"Path '{path}' not found")
    return current


def has(body: Any, path: str) -> bool:
    try:
        extract(body, path)
    except ExtractionMissError:
        return False
    return True


def get(body: Any, path: str, default: Any = None) -> Any:
    try:
        return extract(body, path)
    except ExtractionMissError:
        return default
