"""Checks documents against registry declarations before evaluation."""

from __future__ import annotations

from collections.abc import Iterable

from rulekit._nodes import ExpressionTree, OperationNode, iter_predicates
from rulekit._registry import ResolverRegistry
from rulekit._rules import Rule


def validate_tree(tree: ExpressionTree, registry: ResolverRegistry) -> None:
    """
    Check the arguments of every declared predicate in ``tree``.

    Names without a declaration are left alone; they evaluate to False.

    Raises:
        DocumentError: on the first invalid argument list
    """
    for node in iter_predicates(tree):
        declaration = registry.declaration(node.name)
        if declaration is not None:
            declaration.bind(node.args)


def validate_operations(
    operations: Iterable[OperationNode], registry: ResolverRegistry
) -> None:
    """
    Check the arguments of every declared operation.

    Names without a declaration are left alone; executing them raises
    UnknownOperationError.
    """
    for op in operations:
        declaration = registry.declaration(op.name)
        if declaration is not None:
            declaration.bind(op.args)


def validate_rule(
    rule: Rule, conditions: ResolverRegistry, effects: ResolverRegistry
) -> None:
    validate_tree(rule.conditions, conditions)
    validate_operations(rule.effects, effects)
