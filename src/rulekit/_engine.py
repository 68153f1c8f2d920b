"""Rule orchestration: the public entry point."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rulekit._conditions import ConditionEvaluator
from rulekit._effects import DEFAULT_METADATA_KEY, EffectExecutor
from rulekit._registry import ResolverRegistry
from rulekit._rules import RuleCollection, flatten_rules, select_rules
from rulekit._types import Context
from rulekit._validation import validate_rule
from rulekit.builtins import CONDITIONS as BUILTIN_CONDITIONS
from rulekit.builtins import EFFECTS as BUILTIN_EFFECTS

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """
    Engine settings.

    Attributes:
        metadata_key: Context key the running rule's metadata is written to
        validate: Check every document against the declarations before
            evaluating anything
        include_builtins: Start from the built-in predicates and operations
            (custom registries are merged over them)
    """

    metadata_key: str = DEFAULT_METADATA_KEY
    validate: bool = True
    include_builtins: bool = True


class RuleEngine:
    """
    Evaluates rule collections and applies the effects of the rules that fire.

    Example:
        engine = RuleEngine()
        ctx = {"cart": {"total": 120}}
        await engine.process_rules(
            [
                {
                    "conditions": 'greater_than(path="cart.total", value=100)',
                    "effects": 'multiply(path="cart.total", value=0.9)',
                },
            ],
            ctx,
        )
        # ctx == {"cart": {"total": 108.0}, "rule": {}}

    Rule sets:
        A list nested in the top-level collection is a rule set: at most one
        of its rules fires, the first whose condition is true. Lists nested
        deeper belong to the same outer set.
    """

    def __init__(
        self,
        conditions: ResolverRegistry | None = None,
        effects: ResolverRegistry | None = None,
        config: EngineConfig | None = None,
    ):
        self.config = config or EngineConfig()
        self.conditions = self._registry(conditions, "conditions")
        self.effects = self._registry(effects, "effects")
        self.condition_evaluator = ConditionEvaluator(self.conditions)
        self.effect_executor = EffectExecutor(
            self.effects, metadata_key=self.config.metadata_key
        )

    def _registry(self, custom: ResolverRegistry | None, kind: str) -> ResolverRegistry:
        if not self.config.include_builtins:
            return custom or ResolverRegistry()

        base = BUILTIN_CONDITIONS if kind == "conditions" else BUILTIN_EFFECTS
        return base.merge(custom) if custom is not None else base

    async def process_rules(self, rules: RuleCollection, context: Context) -> None:
        """
        Evaluate every rule's conditions, then apply the selected effects.

        All conditions are evaluated in one batch before any effect runs, so
        effects never influence conditions within one call. Selected rules'
        effects then run in the order the rules were declared.

        The context is mutated in place. If this raises, the context may have
        been partially updated.
        """
        flattened = flatten_rules(rules)
        if self.config.validate:
            for entry in flattened:
                validate_rule(entry.rule, self.conditions, self.effects)

        results = await self.condition_evaluator.evaluate_batch(
            [entry.rule.conditions for entry in flattened], context
        )
        selected = select_rules(flattened, results)
        logger.debug("%d of %d rule(s) selected", len(selected), len(flattened))
        await self.effect_executor.apply(selected, context)
