"""Tests for effect execution: ordering, concurrency and failures."""

from __future__ import annotations

import asyncio

import pytest

from rulekit import (
    Declaration,
    DocumentError,
    EffectExecutor,
    Param,
    ParamType,
    ResolverRegistry,
    Rule,
    UnknownOperationError,
    get_path,
    set_path,
)
from rulekit.builtins import EFFECTS


def make_rule(effects, **metadata):
    return Rule("always", effects, metadata)


class TestSequentialRules:
    def test_rules_apply_in_order(self):
        ctx = {"x": 7}
        executor = EffectExecutor(EFFECTS)
        rules = [
            make_rule('add(path="x", value=4)'),
            make_rule('multiply(path="x", value=3)'),
        ]
        asyncio.run(executor.apply(rules, ctx))
        assert ctx["x"] == 33

    def test_rule_waits_for_previous_rule(self):
        events = []

        async def slow(args, ctx):
            await asyncio.sleep(0.02)
            events.append(("slow", args["tag"]))

        async def fast(args, ctx):
            events.append(("fast", args["tag"]))

        tag = Param("tag", ParamType.STRING, required=True)
        registry = ResolverRegistry(
            [Declaration("slow", (tag,)), Declaration("fast", (tag,))],
            {"slow": slow, "fast": fast},
        )
        rules = [make_rule('slow(tag="r1")'), make_rule('fast(tag="r2")')]
        asyncio.run(EffectExecutor(registry).apply(rules, {}))
        assert events == [("slow", "r1"), ("fast", "r2")]

    def test_operations_within_rule_run_concurrently(self):
        started = []

        async def op(args, ctx):
            started.append(args["tag"])
            await asyncio.sleep(0.01)
            # Every sibling has started before any finishes
            assert len(started) == 3

        registry = ResolverRegistry(
            [Declaration("op", (Param("tag", ParamType.STRING, required=True),))],
            {"op": op},
        )
        rule = make_rule('op(tag="a") op(tag="b") op(tag="c")')
        asyncio.run(EffectExecutor(registry).apply([rule], {}))
        assert sorted(started) == ["a", "b", "c"]

    def test_empty_effects(self):
        ctx = {"x": 1}
        asyncio.run(EffectExecutor(EFFECTS).apply([make_rule(())], ctx))
        assert ctx["x"] == 1


class TestMetadata:
    def test_metadata_is_visible_to_operations(self):
        seen = []

        def record(args, ctx):
            seen.append(ctx["rule"]["label"])

        registry = ResolverRegistry([Declaration("record")], {"record": record})
        rules = [make_rule("record", label="first"), make_rule("record", label="second")]
        ctx = {}
        asyncio.run(EffectExecutor(registry).apply(rules, ctx))
        assert seen == ["first", "second"]
        assert ctx["rule"] == {"label": "second"}

    def test_operations_cannot_change_rule_metadata(self):
        def tag(args, ctx):
            ctx["rule"]["tags"].append("seen")

        registry = ResolverRegistry([Declaration("tag")], {"tag": tag})
        rule = make_rule("tag", tags=["vip"])
        for _ in range(2):
            ctx = {}
            asyncio.run(EffectExecutor(registry).apply([rule], ctx))
            assert ctx["rule"]["tags"] == ["vip", "seen"]
        assert rule.metadata["tags"] == ["vip"]

    def test_custom_metadata_key(self):
        def copy_label(args, ctx):
            set_path(ctx, "out", get_path(ctx, "meta.label"))

        registry = ResolverRegistry([Declaration("copy")], {"copy": copy_label})
        ctx = {}
        executor = EffectExecutor(registry, metadata_key="meta")
        asyncio.run(executor.apply([make_rule("copy", label="x")], ctx))
        assert ctx["out"] == "x"
        assert "rule" not in ctx


class TestFailures:
    def test_unknown_operation(self):
        ctx = {"x": 1}
        rule = make_rule('add(path="x", value=1) explode(path="x")')
        with pytest.raises(UnknownOperationError) as exc:
            asyncio.run(EffectExecutor(EFFECTS).apply([rule], ctx))
        assert exc.value.name == "explode"
        assert "Missing resolver for effect 'explode'" in str(exc.value)
        # Lookup happens before any operation of the rule starts
        assert ctx["x"] == 1

    def test_unknown_operation_is_lookup_error(self):
        with pytest.raises(LookupError):
            asyncio.run(EffectExecutor(EFFECTS).apply([make_rule("nope")], {}))

    def test_failure_stops_later_rules(self):
        ctx = {"x": 1, "y": "text"}
        rules = [
            make_rule('add(path="x", value=1)'),
            make_rule('add(path="y", value=1)'),
            make_rule('add(path="x", value=100)'),
        ]
        with pytest.raises(TypeError):
            asyncio.run(EffectExecutor(EFFECTS).apply(rules, ctx))
        # No rollback: the first rule's change stays, the third never ran
        assert ctx["x"] == 2

    def test_invalid_arguments(self):
        with pytest.raises(DocumentError):
            asyncio.run(EffectExecutor(EFFECTS).apply([make_rule("add")], {}))
