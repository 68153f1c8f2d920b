"""Effect execution."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Sequence

from rulekit._errors import UnknownOperationError
from rulekit._nodes import OperationNode
from rulekit._registry import Resolver, ResolverRegistry
from rulekit._rules import Rule
from rulekit._tracing import EFFECT, traced_call
from rulekit._types import Context

logger = logging.getLogger(__name__)

DEFAULT_METADATA_KEY = "rule"


def _done(_: object) -> bool:
    return True


class EffectExecutor:
    """
    Applies the effects of rules to a context.

    Rules run one after another, in order; a rule only starts once every
    operation of the previous rule has finished. The operations of a single
    rule are started together and joined.

    There is no rollback: if an operation raises, ``apply`` raises
    immediately and whatever was already written to the context stays.

    Before a rule's operations run, the rule's metadata is written to
    ``context[metadata_key]`` so operations can read values attached to the
    rule definition.
    """

    def __init__(
        self, registry: ResolverRegistry, metadata_key: str = DEFAULT_METADATA_KEY
    ):
        self.registry = registry
        self.metadata_key = metadata_key

    async def apply(self, rules: Sequence[Rule], context: Context) -> None:
        """Apply the effects of each rule sequentially."""
        logger.debug("Applying effects of %d rule(s)", len(rules))
        for index, rule in enumerate(rules):
            await self.apply_rule(rule, context, index)

    async def apply_rule(self, rule: Rule, context: Context, index: int = 0) -> None:
        """Apply one rule's effects; its operations run concurrently."""
        context[self.metadata_key] = copy.deepcopy(dict(rule.metadata))
        calls = [(self._lookup(op), op) for op in rule.effects]
        await traced_call(
            EFFECT,
            f"rule[{index}]",
            context,
            0,
            lambda: asyncio.gather(*(self._run(r, op, context) for r, op in calls)),
            outcome=_done,
        )

    def _lookup(self, op: OperationNode) -> Resolver:
        resolver = self.registry.get(op.name)
        if resolver is None:
            raise UnknownOperationError(op.name)
        return resolver

    async def _run(self, resolver: Resolver, op: OperationNode, context: Context) -> None:
        args = resolver.declaration.bind(op.args)
        await traced_call(
            EFFECT,
            f"operation({op.name})",
            context,
            1,
            lambda: resolver(args, context),
            outcome=_done,
        )
