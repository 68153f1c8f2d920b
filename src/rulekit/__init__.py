"""
Rulekit - Asynchronous Condition/Effect Rule Engine

Evaluates collections of rules against a mutable context. Each rule pairs a
boolean condition tree of named predicates with an ordered list of named
effect operations that update the context in place.

Evaluation model:
    - Every rule's condition is evaluated in one concurrent batch; identical
      predicate calls within the batch run exactly once
    - Effects of the rules whose conditions passed then run rule by rule, in
      order; the operations of one rule run concurrently
    - A list nested in the top-level collection is a rule set: only the first
      passing rule of the set fires

Operators (condition DSL):
    &  = AND    |  = OR    ^  = XOR (exactly one)    ~  = NOT

Example:
    import asyncio
    from rulekit import RuleEngine

    engine = RuleEngine()
    ctx = {"cart": {"total": 120, "items": 3}}

    rules = [
        {
            "conditions": 'greater_than(path="cart.total", value=100)',
            "effects": 'multiply(path="cart.total", value=0.9)',
            "label": "bulk discount",
        },
        [
            {"conditions": 'greater_than(path="cart.items", value=5)',
             "effects": 'set(path="shipping.free", value=true)'},
            {"conditions": "always",
             "effects": 'set(path="shipping.free", value=false)'},
        ],
    ]

    asyncio.run(engine.process_rules(rules, ctx))
    # ctx["cart"]["total"] == 108.0, ctx["shipping"] == {"free": False}
"""

from __future__ import annotations

from rulekit._args import decode_json, is_number, resolve_value, to_number
from rulekit._caching import BatchCache, cache_key
from rulekit._conditions import ConditionEvaluator, combine
from rulekit._effects import DEFAULT_METADATA_KEY, EffectExecutor
from rulekit._engine import EngineConfig, RuleEngine
from rulekit._errors import (
    ConfigurationError,
    DocumentError,
    RegistryError,
    RuleEngineError,
    UnknownOperationError,
)
from rulekit._explain import explain
from rulekit._nodes import (
    ExpressionTree,
    Logic,
    LogicalNode,
    OperationNode,
    PredicateNode,
    all_of,
    any_of,
    iter_predicates,
    not_,
    one_of,
    operation,
    predicate,
)
from rulekit._parser import (
    ExpressionParser,
    load_condition,
    load_effects,
    parse_condition,
    parse_effects,
)
from rulekit._paths import get_path, has_path, parse_path, set_path, unset_path
from rulekit._registry import (
    Catalog,
    Declaration,
    Param,
    ParamType,
    Resolver,
    ResolverRegistry,
)
from rulekit._rules import FlatRule, Rule, flatten_rules, select_rules
from rulekit._tracing import (
    LoggingHook,
    OpenTelemetryHook,
    PrintHook,
    TraceConfig,
    TraceHook,
    use_tracing,
)
from rulekit._types import MISSING, Args, Context, ResolverFn
from rulekit._validation import validate_operations, validate_rule, validate_tree

__version__ = "0.1.0"
__all__ = [
    # Engine
    "RuleEngine",
    "EngineConfig",
    "ConditionEvaluator",
    "EffectExecutor",
    "DEFAULT_METADATA_KEY",
    "combine",
    # Rules
    "Rule",
    "FlatRule",
    "flatten_rules",
    "select_rules",
    # Nodes
    "ExpressionTree",
    "Logic",
    "LogicalNode",
    "PredicateNode",
    "OperationNode",
    "predicate",
    "operation",
    "all_of",
    "any_of",
    "one_of",
    "not_",
    "iter_predicates",
    # Expression parsing
    "ExpressionParser",
    "parse_condition",
    "parse_effects",
    "load_condition",
    "load_effects",
    # Validation
    "validate_tree",
    "validate_operations",
    "validate_rule",
    # Registry
    "Catalog",
    "Declaration",
    "Param",
    "ParamType",
    "Resolver",
    "ResolverRegistry",
    # Arguments and paths
    "resolve_value",
    "decode_json",
    "to_number",
    "is_number",
    "get_path",
    "has_path",
    "set_path",
    "unset_path",
    "parse_path",
    "MISSING",
    "Args",
    "Context",
    "ResolverFn",
    # Caching
    "BatchCache",
    "cache_key",
    # Tracing
    "TraceHook",
    "TraceConfig",
    "use_tracing",
    "PrintHook",
    "LoggingHook",
    "OpenTelemetryHook",
    # Explain
    "explain",
    # Errors
    "RuleEngineError",
    "DocumentError",
    "ConfigurationError",
    "UnknownOperationError",
    "RegistryError",
]
