"""Shared type aliases and the MISSING sentinel."""

from __future__ import annotations

from collections.abc import Callable, Mapping, MutableMapping
from typing import Any

Context = MutableMapping[str, Any]
"""The nested, mutable data structure that rules read from and write to."""

Args = Mapping[str, Any]
"""Bound arguments handed to a resolver."""

ResolverFn = Callable[[Args, Context], Any]
"""Signature of a predicate or operation implementation: (args, context) -> value or awaitable."""


class _Missing:
    """Marker for a value that is absent from the context (not the same as None)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"

    def __reduce__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()
