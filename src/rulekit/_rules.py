"""Rule definitions and rule collections."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, NamedTuple, Union

from rulekit._errors import DocumentError
from rulekit._nodes import ExpressionTree, OperationNode
from rulekit._parser import load_condition, load_effects

CONDITIONS = "conditions"
EFFECTS = "effects"


@dataclass(frozen=True)
class Rule:
    """
    A condition tree paired with an ordered list of effect operations.

    ``conditions`` and ``effects`` accept DSL text, config structures or
    nodes; they are parsed when the rule is created.

    Example:
        Rule(
            'greater_than(path="cart.total", value=100)',
            'multiply(path="cart.total", value=0.9)',
            {"label": "bulk discount"},
        )
    """

    conditions: ExpressionTree
    effects: tuple[OperationNode, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "conditions", load_condition(self.conditions))
        object.__setattr__(self, "effects", load_effects(self.effects))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Rule:
        """
        Build a rule from a mapping such as a decoded JSON object.

        ``conditions`` and ``effects`` are required; every other field becomes
        metadata.
        """
        for key in (CONDITIONS, EFFECTS):
            if key not in data:
                raise DocumentError(f"Rule is missing '{key}': {dict(data)!r}")
        metadata = {k: v for k, v in data.items() if k not in (CONDITIONS, EFFECTS)}
        return cls(data[CONDITIONS], data[EFFECTS], metadata)


RuleLike = Union[Rule, Mapping[str, Any]]
RuleCollection = Sequence[Union[RuleLike, "RuleCollection"]]


class FlatRule(NamedTuple):
    """A rule leaf with the index of the top-level entry it came from."""

    group: int
    in_set: bool
    rule: Rule


_END = object()


def coerce_rule(item: Any) -> Rule:
    if isinstance(item, Rule):
        return item
    if isinstance(item, Mapping):
        return Rule.from_mapping(item)
    raise DocumentError(f"Invalid rule: {item!r}")


def _is_collection(item: Any) -> bool:
    return isinstance(item, Sequence) and not isinstance(item, (str, bytes))


def flatten_rules(rules: RuleCollection) -> list[FlatRule]:
    """
    Depth-first flatten a rule collection.

    A top-level rule forms its own group. Every rule anywhere inside a
    top-level list shares that list's group, however deeply it is nested.

    Example:
        flatten_rules([a, [b, [c]], d])
        # [FlatRule(0, False, a), FlatRule(1, True, b),
        #  FlatRule(1, True, c), FlatRule(2, False, d)]
    """
    flattened: list[FlatRule] = []
    for group, item in enumerate(rules):
        if not _is_collection(item):
            flattened.append(FlatRule(group, False, coerce_rule(item)))
            continue

        stack = [iter(item)]
        while stack:
            child = next(stack[-1], _END)
            if child is _END:
                stack.pop()
            elif _is_collection(child):
                stack.append(iter(child))
            else:
                flattened.append(FlatRule(group, True, coerce_rule(child)))
    return flattened


def select_rules(flattened: Sequence[FlatRule], results: Sequence[bool]) -> list[Rule]:
    """
    Pick the rules whose effects should run, in flattening order.

    A rule is selected when its condition is true, unless it belongs to a
    rule set in which an earlier rule was already selected.
    """
    selected: list[Rule] = []
    claimed: set[int] = set()
    for entry, ok in zip(flattened, results):
        if not ok:
            continue
        if entry.in_set:
            if entry.group in claimed:
                continue
            claimed.add(entry.group)
        selected.append(entry.rule)
    return selected
