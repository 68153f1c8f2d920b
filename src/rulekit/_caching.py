"""Batch-scoped, single-flight memoization of predicate calls."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

from rulekit._types import Args


def cache_key(name: str, args: Args) -> str:
    """
    Canonical key for a predicate call.

    Deep-equal argument maps produce the same key regardless of key order.
    """
    encoded = json.dumps(args, sort_keys=True, separators=(",", ":"), default=repr)
    return f"{name}:{encoded}"


class BatchCache:
    """
    Memoizes predicate results for the duration of one evaluation batch.

    Identical requests share one in-flight computation: the first caller
    starts a task, later callers await the same task, and every waiter
    receives the same result (or the same exception).

    A new BatchCache is created for every batch and dropped afterwards;
    nothing is shared between batches.

    Attributes:
        hits: Lookups answered by an existing entry
        misses: Lookups that started a computation
    """

    def __init__(self) -> None:
        self._entries: dict[str, asyncio.Future[Any]] = {}
        self.hits = 0
        self.misses = 0

    async def get_or_run(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            entry = asyncio.ensure_future(factory())
            self._entries[key] = entry
        else:
            self.hits += 1
        # A cancelled waiter must not cancel the shared computation
        return await asyncio.shield(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
