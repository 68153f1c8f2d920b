"""
Path access into nested dict/list structures.

Paths use dots for keys and brackets for list indices or quoted keys:

    order.items[0].price
    totals["gross.eur"]
    matrix[1][2]

A digit-only key such as ``items.0`` reads from a list like ``items[0]``,
but only bracketed indices make :func:`set_path` create lists.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping, MutableSequence, Sequence
from typing import Any, Union

from rulekit._errors import ConfigurationError
from rulekit._types import MISSING

PathToken = Union[str, int]

_TOKEN_RE = re.compile(
    r"""
      \[\s*(?P<index>\d+)\s*\]                      # [0]
    | \[\s*(?P<quote>["'])(?P<quoted>.*?)(?P=quote)\s*\]  # ["key"] or ['key']
    | (?P<key>[^.\[\]]+)                            # key
    | (?P<dot>\.)
    """,
    re.VERBOSE,
)


def parse_path(path: str | Sequence[PathToken]) -> tuple[PathToken, ...]:
    """
    Split a path into key and index tokens.

    Example:
        >>> parse_path('a.b[0]["c.d"]')
        ('a', 'b', 0, 'c.d')
    """
    if not isinstance(path, str):
        return tuple(path)
    if not path:
        raise ConfigurationError("Path must not be empty")

    tokens: list[PathToken] = []
    pos = 0
    expect_key = True  # a dot must be followed by a key
    while pos < len(path):
        match = _TOKEN_RE.match(path, pos)
        if match is None:
            raise ConfigurationError(f"Invalid path {path!r} at position {pos}")
        if match.group("dot") is not None:
            if expect_key:
                raise ConfigurationError(f"Invalid path {path!r} at position {pos}")
            expect_key = True
        elif match.group("index") is not None:
            tokens.append(int(match.group("index")))
            expect_key = False
        elif match.group("quote") is not None:
            tokens.append(match.group("quoted"))
            expect_key = False
        else:
            if not expect_key:
                raise ConfigurationError(f"Invalid path {path!r} at position {pos}")
            tokens.append(match.group("key"))
            expect_key = False
        pos = match.end()

    if expect_key:
        raise ConfigurationError(f"Invalid path {path!r}: ends with '.'")
    return tuple(tokens)


def _as_index(token: PathToken) -> int | None:
    if isinstance(token, int):
        return token
    if token.isdigit():
        return int(token)
    return None


def _child(container: Any, token: PathToken) -> Any:
    if isinstance(container, Mapping):
        if token in container:
            return container[token]
        if isinstance(token, int) and str(token) in container:
            return container[str(token)]
        return MISSING
    if isinstance(container, Sequence) and not isinstance(container, (str, bytes)):
        index = _as_index(token)
        if index is not None and index < len(container):
            return container[index]
    return MISSING


def get_path(obj: Any, path: str | Sequence[PathToken], default: Any = MISSING) -> Any:
    """
    Read the value at ``path``.

    Returns ``default`` (MISSING unless given) when any step of the path does
    not exist. A stored None is returned as None, not as missing.
    """
    current = obj
    for token in parse_path(path):
        current = _child(current, token)
        if current is MISSING:
            return default
    return current


def has_path(obj: Any, path: str | Sequence[PathToken]) -> bool:
    """Check whether ``path`` exists in ``obj``."""
    return get_path(obj, path) is not MISSING


def _assign(container: Any, token: PathToken, value: Any) -> None:
    if isinstance(container, MutableMapping):
        container[token] = value
        return
    if isinstance(container, MutableSequence):
        index = _as_index(token)
        if index is None:
            raise TypeError(f"Cannot use key {token!r} on a list")
        if index >= len(container):
            container.extend([None] * (index + 1 - len(container)))
        container[index] = value
        return
    raise TypeError(f"Cannot set {token!r} on {type(container).__name__}")


def set_path(obj: Any, path: str | Sequence[PathToken], value: Any) -> None:
    """
    Write ``value`` at ``path``, creating intermediate containers.

    A missing (or scalar) intermediate is replaced with a list when the next
    token is a bracketed index and with a dict otherwise. Lists are padded with
    None when writing past their end.
    """
    tokens = parse_path(path)
    current = obj
    for token, next_token in zip(tokens, tokens[1:]):
        child = _child(current, token)
        if not isinstance(child, (MutableMapping, MutableSequence)):
            child = [] if isinstance(next_token, int) else {}
            _assign(current, token, child)
        current = child
    _assign(current, tokens[-1], value)


def unset_path(obj: Any, path: str | Sequence[PathToken]) -> bool:
    """
    Delete the value at ``path``. List elements are removed, shifting the rest.

    Returns True if something was deleted.
    """
    tokens = parse_path(path)
    parent = obj
    for token in tokens[:-1]:
        parent = _child(parent, token)
        if parent is MISSING:
            return False

    last = tokens[-1]
    if isinstance(parent, MutableMapping):
        for key in (last, str(last)):
            if key in parent:
                del parent[key]
                return True
        return False
    if isinstance(parent, MutableSequence):
        index = _as_index(last)
        if index is not None and index < len(parent):
            del parent[index]
            return True
    return False
