"""Tests for rule orchestration: selection, rule sets and configuration."""

from __future__ import annotations

import asyncio
import copy
from unittest.mock import MagicMock

import pytest

from rulekit import (
    Catalog,
    DocumentError,
    EngineConfig,
    FlatRule,
    Param,
    ParamType,
    Rule,
    RuleEngine,
    flatten_rules,
    select_rules,
)


def rule(conditions, effects, **metadata):
    return {"conditions": conditions, "effects": effects, **metadata}


def push(value):
    return rule("always", f'concat(path="log", value={value})')


def run(engine, rules, ctx):
    asyncio.run(engine.process_rules(rules, ctx))
    return ctx


class TestFlattenRules:
    def test_groups_follow_top_level_index(self):
        a, b, c, d = (Rule("always", ()) for _ in range(4))
        assert flatten_rules([a, [b, [c]], d]) == [
            FlatRule(0, False, a),
            FlatRule(1, True, b),
            FlatRule(1, True, c),
            FlatRule(2, False, d),
        ]

    def test_mappings_become_rules(self):
        (entry,) = flatten_rules([rule("always", "unset(path='x')", label="l")])
        assert entry.rule.metadata == {"label": "l"}
        assert entry.rule.effects[0].name == "unset"

    def test_missing_fields(self):
        with pytest.raises(DocumentError):
            flatten_rules([{"conditions": "always"}])

    def test_invalid_entry(self):
        with pytest.raises(DocumentError):
            flatten_rules([42])


class TestSelectRules:
    def test_standalone_rules_are_independent(self):
        a, b = Rule("always", ()), Rule("always", ())
        flattened = [FlatRule(0, False, a), FlatRule(1, False, b)]
        assert select_rules(flattened, [True, True]) == [a, b]

    def test_first_true_in_set_wins(self):
        a, b, c = (Rule("always", ()) for _ in range(3))
        flattened = [FlatRule(0, True, a), FlatRule(0, True, b), FlatRule(0, True, c)]
        assert select_rules(flattened, [False, True, True]) == [b]


class TestProcessRules:
    def test_false_condition_leaves_context_untouched(self):
        ctx = {"x": 1}
        before = copy.deepcopy(ctx)
        run(RuleEngine(), [rule("never", 'set(path="x", value=2)')], ctx)
        assert ctx == before

    def test_true_condition_applies_effects(self):
        ctx = {"cart": {"total": 120}}
        run(
            RuleEngine(),
            [
                rule(
                    'greater_than(path="cart.total", value=100)',
                    'multiply(path="cart.total", value=0.5)',
                    label="half off",
                )
            ],
            ctx,
        )
        assert ctx["cart"]["total"] == 60
        assert ctx["rule"] == {"label": "half off"}

    def test_effects_run_in_declaration_order(self):
        ctx = {"x": 7}
        run(
            RuleEngine(),
            [
                rule("always", 'add(path="x", value=4)'),
                rule("always", 'multiply(path="x", value=3)'),
            ],
            ctx,
        )
        assert ctx["x"] == 33

    def test_conditions_see_the_original_context(self):
        ctx = {"x": 1}
        run(
            RuleEngine(),
            [
                rule("always", 'set(path="x", value=5)'),
                rule('equals_number(path="x", value=1)', 'set(path="seen", value=true)'),
            ],
            ctx,
        )
        assert ctx["x"] == 5
        assert ctx["seen"] is True

    def test_rule_set_fires_only_first_match(self):
        ctx = {}
        run(
            RuleEngine(),
            [[rule("never", 'set(path="tier", value=1)'), push(2), push(3)], push(4)],
            ctx,
        )
        assert "tier" not in ctx
        assert ctx["log"] == [2, 4]

    def test_nested_sets_collapse_into_outer_set(self):
        ctx = {}
        run(RuleEngine(), [[[push(1)], [push(2)]], push(3)], ctx)
        assert ctx["log"] == [1, 3]

    def test_standalone_rules_all_fire(self):
        ctx = {}
        run(RuleEngine(), [push(1), push(2), push(3)], ctx)
        assert ctx["log"] == [1, 2, 3]

    def test_structured_documents(self):
        ctx = {"user": {"age": 30}}
        run(
            RuleEngine(),
            [
                {
                    "conditions": {
                        "and": [
                            {"greater_than": {"path": "user.age", "value": 18}},
                            {"not": [{"is_truthy": {"path": "user.banned"}}]},
                        ]
                    },
                    "effects": [{"set": {"path": "user.allowed", "value": True}}],
                }
            ],
            ctx,
        )
        assert ctx["user"]["allowed"] is True

    def test_duplicate_predicates_resolve_once(self):
        check = MagicMock(return_value=True)
        catalog = Catalog()
        catalog.declare("check", Param("key", ParamType.STRING, required=True))(check)
        engine = RuleEngine(conditions=catalog.build())
        run(
            engine,
            [
                rule('check(key="a")', ()),
                rule('check(key="a") & check(key="b")', ()),
                [rule('check(key="a")', ()), rule('check(key="b")', ())],
            ],
            {},
        )
        assert check.call_count == 2

    def test_unknown_predicate_is_false(self):
        ctx = {}
        run(RuleEngine(), [rule("no_such_check", 'set(path="x", value=1)')], ctx)
        assert ctx == {}


class TestValidation:
    def test_invalid_arguments_fail_before_evaluation(self):
        check = MagicMock(return_value=True)
        catalog = Catalog()
        catalog.declare("check")(check)
        engine = RuleEngine(conditions=catalog.build())
        ctx = {"x": 1}
        with pytest.raises(DocumentError):
            run(
                engine,
                [
                    rule("check", 'add(path="x", value=1)'),
                    rule("check", 'add(path="x", valu=1)'),
                ],
                ctx,
            )
        assert check.call_count == 0
        assert ctx == {"x": 1}

    def test_validation_can_be_disabled(self):
        engine = RuleEngine(config=EngineConfig(validate=False))
        ctx = {"x": 1}
        # The bad rule never fires, so nothing checks its arguments
        run(engine, [rule("never", 'add(path="x", valu=1)')], ctx)
        assert ctx == {"x": 1}


class TestConfiguration:
    def test_custom_resolvers_override_builtins(self):
        catalog = Catalog()
        catalog.declare("always")(lambda args, ctx: False)
        engine = RuleEngine(conditions=catalog.build())
        ctx = {}
        run(engine, [rule("always", 'set(path="x", value=1)')], ctx)
        assert ctx == {}
        # Other built-ins are still available
        assert "never" in engine.conditions

    def test_without_builtins(self):
        engine = RuleEngine(config=EngineConfig(include_builtins=False))
        assert len(engine.conditions) == 0
        assert len(engine.effects) == 0

    def test_custom_effect(self):
        catalog = Catalog()

        @catalog.declare("greet", Param("name", ParamType.STRING, required=True))
        async def greet(args, ctx):
            ctx["greeting"] = f"hello {args['name']}"

        engine = RuleEngine(effects=catalog.build())
        ctx = {}
        run(engine, [rule("always", 'greet(name="ada")')], ctx)
        assert ctx["greeting"] == "hello ada"

    def test_metadata_key(self):
        engine = RuleEngine(config=EngineConfig(metadata_key="current"))
        ctx = {}
        run(engine, [rule("always", (), label="x")], ctx)
        assert ctx == {"current": {"label": "x"}}
