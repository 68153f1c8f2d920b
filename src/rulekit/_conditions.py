"""Condition evaluation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from rulekit._caching import BatchCache, cache_key
from rulekit._nodes import ExpressionTree, Logic, LogicalNode, PredicateNode
from rulekit._registry import Resolver, ResolverRegistry
from rulekit._tracing import PREDICATE, traced_call
from rulekit._types import Args, Context

logger = logging.getLogger(__name__)


def combine(kind: Logic, results: Sequence[bool]) -> bool:
    """Fold child results for a logical node."""
    if kind is Logic.AND:
        return all(results)
    if kind is Logic.OR:
        return any(results)
    if kind is Logic.XOR:
        return sum(1 for r in results if r) == 1
    if kind is Logic.NOT:
        # Several children are grouped as AND first (NAND)
        return not all(results)
    raise ValueError(f"Unknown logical kind: {kind!r}")


class ConditionEvaluator:
    """
    Evaluates condition trees against a context.

    Children of a logical node are always evaluated concurrently and never
    short-circuited, so that identical predicate calls anywhere in a batch
    can be served by one resolver call.

    A predicate whose name has no resolver evaluates to False instead of
    raising; every other error propagates.

    Example:
        evaluator = ConditionEvaluator(registry)
        results = await evaluator.evaluate_batch(
            [parse_condition("always"), parse_condition("never")], {}
        )
        # [True, False]
    """

    def __init__(self, registry: ResolverRegistry):
        self.registry = registry

    async def evaluate_batch(
        self,
        trees: Sequence[ExpressionTree],
        context: Context,
        return_exceptions: bool = False,
    ) -> list[Any]:
        """
        Evaluate every tree, returning one bool per tree in input order.

        All trees share a single BatchCache. Trees are evaluated
        independently: when one fails, the others keep running. By default the
        first failure is raised; with ``return_exceptions=True`` a failed
        tree's slot holds its exception instead.
        """
        cache = BatchCache()
        logger.debug("Evaluating %d condition tree(s)", len(trees))
        results = await asyncio.gather(
            *(self._evaluate(tree, context, cache, 0) for tree in trees),
            return_exceptions=return_exceptions,
        )
        logger.debug(
            "Condition batch done: %d resolver call(s), %d cache hit(s)",
            cache.misses,
            cache.hits,
        )
        return list(results)

    async def evaluate(self, tree: ExpressionTree, context: Context) -> bool:
        """Evaluate a single tree in its own batch."""
        (result,) = await self.evaluate_batch([tree], context)
        return result

    async def _evaluate(
        self, node: ExpressionTree, context: Context, cache: BatchCache, depth: int
    ) -> bool:
        if isinstance(node, PredicateNode):
            return await self._resolve(node, context, cache, depth)
        if isinstance(node, LogicalNode):
            results = await asyncio.gather(
                *(self._evaluate(child, context, cache, depth + 1) for child in node.children)
            )
            return combine(node.kind, results)
        raise TypeError(f"Unsupported condition node: {node!r}")

    async def _resolve(
        self, node: PredicateNode, context: Context, cache: BatchCache, depth: int
    ) -> bool:
        resolver = self.registry.get(node.name)
        if resolver is None:
            logger.debug("No resolver for predicate '%s', evaluating as false", node.name)
            return False

        args = resolver.declaration.bind(node.args)
        return await cache.get_or_run(
            cache_key(node.name, args),
            lambda: self._call(resolver, args, context, depth),
        )

    async def _call(
        self, resolver: Resolver, args: Args, context: Context, depth: int
    ) -> bool:
        value = await traced_call(
            PREDICATE,
            f"predicate({resolver.name})",
            context,
            depth,
            lambda: resolver(args, context),
        )
        return bool(value)
