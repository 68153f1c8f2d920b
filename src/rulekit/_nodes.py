"""
Expression node model.

A condition is a tree of LogicalNode (AND / OR / XOR / NOT) and PredicateNode
leaves. Effects are flat, ordered sequences of OperationNode. All nodes are
immutable.

Nodes can be composed with operators, mirroring the DSL:
    &  = AND
    |  = OR
    ^  = XOR (exactly one)
    ~  = NOT

Example:
    from rulekit import predicate

    adult = predicate("greater_than_or_equal", path="user.age", value=18)
    banned = predicate("is_truthy", path="user.banned")
    allowed = adult & ~banned
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Union


class Logic(str, Enum):
    """Kinds of logical node."""

    AND = "and"
    OR = "or"
    XOR = "xor"
    NOT = "not"


class _Composable:
    def __and__(self, other: ExpressionTree) -> LogicalNode:
        return _merge(Logic.AND, self, other)  # type: ignore[arg-type]

    def __or__(self, other: ExpressionTree) -> LogicalNode:
        return _merge(Logic.OR, self, other)  # type: ignore[arg-type]

    def __xor__(self, other: ExpressionTree) -> LogicalNode:
        # Not flattened: (a ^ b) ^ c is not "exactly one of a, b, c"
        return LogicalNode(Logic.XOR, (self, other))  # type: ignore[arg-type]

    def __invert__(self) -> LogicalNode:
        return LogicalNode(Logic.NOT, (self,))  # type: ignore[arg-type]


def _merge(kind: Logic, left: ExpressionTree, right: ExpressionTree) -> LogicalNode:
    """Combine two nodes, flattening same-kind AND/OR chains."""
    children: list[ExpressionTree] = []
    for node in (left, right):
        if isinstance(node, LogicalNode) and node.kind is kind:
            children.extend(node.children)
        else:
            children.append(node)
    return LogicalNode(kind, tuple(children))


def _freeze(args: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(args or {}))


@dataclass(frozen=True)
class PredicateNode(_Composable):
    """A named boolean check, resolved against the context."""

    name: str
    args: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", _freeze(self.args))

    def __repr__(self) -> str:
        return f"PredicateNode({_call_repr(self.name, self.args)})"


@dataclass(frozen=True)
class LogicalNode(_Composable):
    """
    A logical combination of child nodes.

    An AND with no children is true. A NOT with several children negates
    their AND (NAND).
    """

    kind: Logic
    children: tuple[ExpressionTree, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", Logic(self.kind))
        object.__setattr__(self, "children", tuple(self.children))

    def __repr__(self) -> str:
        inner = ", ".join(repr(c) for c in self.children)
        return f"{self.kind.name}({inner})"


ExpressionTree = Union[LogicalNode, PredicateNode]


@dataclass(frozen=True)
class OperationNode:
    """A named context-mutating action."""

    name: str
    args: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", _freeze(self.args))

    def __repr__(self) -> str:
        return f"OperationNode({_call_repr(self.name, self.args)})"


def _call_repr(name: str, args: Mapping[str, Any]) -> str:
    if not args:
        return name
    return f"{name}({', '.join(f'{k}={v!r}' for k, v in args.items())})"


# =============================================================================
# Constructors
# =============================================================================


def predicate(name: str, **args: Any) -> PredicateNode:
    """
    Build a predicate leaf.

    Example:
        predicate("equals_string", path="user.role", value="admin")
    """
    return PredicateNode(name, args)


def operation(name: str, **args: Any) -> OperationNode:
    """
    Build an effect operation.

    Example:
        operation("add", path="order.total", value=5)
    """
    return OperationNode(name, args)


def all_of(*children: ExpressionTree) -> LogicalNode:
    """True iff every child is true (true when empty)."""
    return LogicalNode(Logic.AND, children)


def any_of(*children: ExpressionTree) -> LogicalNode:
    """True iff at least one child is true."""
    return LogicalNode(Logic.OR, children)


def one_of(*children: ExpressionTree) -> LogicalNode:
    """True iff exactly one child is true."""
    return LogicalNode(Logic.XOR, children)


def not_(*children: ExpressionTree) -> LogicalNode:
    """Negation; with several children this is NAND."""
    return LogicalNode(Logic.NOT, children)


def iter_predicates(tree: ExpressionTree) -> Iterable[PredicateNode]:
    """Yield every predicate leaf in document order (iterative walk)."""
    stack: list[ExpressionTree] = [tree]
    while stack:
        node = stack.pop()
        if isinstance(node, PredicateNode):
            yield node
        else:
            stack.extend(reversed(node.children))
