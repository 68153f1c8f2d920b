"""Tests for the built-in operations."""

from __future__ import annotations

import asyncio
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP

import pytest

from rulekit import ConfigurationError, EffectExecutor, Rule
from rulekit.builtins import EFFECTS, deep_merge, round_to


def apply(effects, ctx):
    asyncio.run(EffectExecutor(EFFECTS).apply([Rule("always", effects)], ctx))
    del ctx["rule"]
    return ctx


class TestArithmetic:
    @pytest.mark.parametrize(
        "effect,expected",
        [
            ('add(path="n", value=5)', 15),
            ('subtract(path="n", value=3)', 7),
            ('multiply(path="n", value=2.5)', 25.0),
            ('divide(path="n", value=4)', 2.5),
            ('max(path="n", value=12)', 12),
            ('max(path="n", value=2)', 10),
            ('min(path="n", value=2)', 2),
            ('clamp(path="n", lower=0, upper=5)', 5),
            ('clamp(path="n", lower=20, upper=30)', 20),
            ('add(path="n", value_path="m")', 13),
        ],
    )
    def test_result(self, effect, expected):
        assert apply(effect, {"n": 10, "m": 3})["n"] == expected

    def test_target_must_be_a_number(self):
        with pytest.raises(TypeError, match="is not a number"):
            apply('add(path="s", value=1)', {"s": "1"})
        with pytest.raises(TypeError):
            apply('multiply(path="missing", value=2)', {})

    def test_operand_from_path_must_be_a_number(self):
        with pytest.raises(TypeError):
            apply('add(path="n", value_path="s")', {"n": 1, "s": "x"})

    def test_divide_by_zero(self):
        ctx = {"n": 1}
        with pytest.raises(ZeroDivisionError):
            apply('divide(path="n", value=0)', ctx)
        assert ctx["n"] == 1

    def test_operand_required(self):
        with pytest.raises(ConfigurationError):
            apply('add(path="n")', {"n": 1})


class TestRounding:
    @pytest.mark.parametrize(
        "effect,value,expected",
        [
            ('round(path="n")', 4.5, 5),
            ('round(path="n", precision=2)', 4.006, 4.01),
            ('round(path="n", precision=-2)', 4060, 4100),
            ('ceiling(path="n")', 4.1, 5),
            ('ceiling(path="n", precision=1)', 6.004, 6.1),
            ('floor(path="n")', 4.9, 4),
            ('floor(path="n", precision=-1)', 47, 40),
        ],
    )
    def test_round(self, effect, value, expected):
        assert apply(effect, {"n": value})["n"] == expected

    def test_integer_result(self):
        assert isinstance(apply('round(path="n")', {"n": 2.4})["n"], int)

    def test_large_numbers(self):
        assert apply('round(path="n", precision=2)', {"n": 1e30})["n"] == 1e30
        assert apply('floor(path="n")', {"n": 10**30})["n"] == 10**30
        assert apply('ceiling(path="n", precision=3)', {"n": 123456789012345678901234567.5})[
            "n"
        ] == 123456789012345678901234567.5

    def test_round_to(self):
        assert round_to(1.005, 2, ROUND_HALF_UP) == 1.01
        assert round_to(-1.5, 0, ROUND_FLOOR) == -2
        assert round_to(1.01, 0, ROUND_CEILING) == 2
        assert round_to(float("inf"), 2, ROUND_HALF_UP) == float("inf")


class TestValues:
    def test_set(self):
        assert apply('set(path="a.b", value={"c": [1]})', {}) == {"a": {"b": {"c": [1]}}}

    def test_set_json_string(self):
        assert apply('set(path="a", value="\\"text\\"")', {}) == {"a": "text"}

    def test_set_invalid_json(self):
        with pytest.raises(ConfigurationError):
            apply('set(path="a", value="text")', {})

    def test_set_from_path_copies(self):
        ctx = apply('set(path="b", value_path="a")', {"a": {"x": 1}})
        assert ctx["b"] == {"x": 1}
        assert ctx["b"] is not ctx["a"]

    def test_unset(self):
        assert apply('unset(path="a.b")', {"a": {"b": 1, "c": 2}}) == {"a": {"c": 2}}
        assert apply('unset(path="missing")', {"a": 1}) == {"a": 1}

    def test_default(self):
        assert apply('default(path="a", value=1)', {}) == {"a": 1}
        assert apply('default(path="a", value=1)', {"a": 5}) == {"a": 5}
        assert apply('default(path="a", value=1)', {"a": None}) == {"a": None}

    def test_merge(self):
        ctx = {"a": {"x": 1, "nested": {"y": 2}}}
        apply('merge(path="a", value={"nested": {"z": 3}, "w": 4})', ctx)
        assert ctx == {"a": {"x": 1, "nested": {"y": 2, "z": 3}, "w": 4}}

    def test_merge_into_missing(self):
        assert apply('merge(path="a", value={"x": 1})', {}) == {"a": {"x": 1}}

    def test_merge_requires_objects(self):
        with pytest.raises(TypeError):
            apply('merge(path="a", value=1)', {"a": {}})
        with pytest.raises(TypeError):
            apply('merge(path="a", value={"x": 1})', {"a": 5})

    def test_deep_merge_lists_by_index(self):
        assert deep_merge([{"a": 1}, 2], [{"b": 2}]) == [{"a": 1, "b": 2}, 2]
        assert deep_merge({"a": [1]}, {"a": [5, 6]}) == {"a": [5, 6]}


class TestLists:
    def test_concat(self):
        assert apply('concat(path="l", value=[3, 4])', {"l": [1, 2]}) == {"l": [1, 2, 3, 4]}
        assert apply('concat(path="l", value=3)', {"l": [1]}) == {"l": [1, 3]}

    def test_concat_wraps_and_creates(self):
        assert apply('concat(path="l", value=2)', {"l": 1}) == {"l": [1, 2]}
        assert apply('concat(path="l", value=[1])', {}) == {"l": [1]}
        assert apply('concat(path="l", value=1)', {"l": None}) == {"l": [1]}

    def test_filter(self):
        ctx = {"l": [{"k": 1, "v": "a"}, {"k": 2, "v": "b"}, {"k": 1, "v": "c"}]}
        apply('filter(path="l", value={"k": 1})', ctx)
        assert ctx["l"] == [{"k": 1, "v": "a"}, {"k": 1, "v": "c"}]

    def test_filter_scalars(self):
        assert apply('filter(path="l", value=2)', {"l": [1, 2, 2, 3]}) == {"l": [2, 2]}

    def test_filter_non_list_is_noop(self):
        assert apply('filter(path="l", value=1)', {"l": "x"}) == {"l": "x"}

    def test_pull(self):
        assert apply('pull(path="l", value=2)', {"l": [1, 2, 3, 2]}) == {"l": [1, 3]}
        assert apply('pull(path="l", value=[1, 3])', {"l": [1, 2, 3]}) == {"l": [2]}

    def test_pull_objects(self):
        ctx = {"l": [{"id": 1, "x": True}, {"id": 2}]}
        apply('pull(path="l", value={"id": 1})', ctx)
        assert ctx["l"] == [{"id": 2}]

    def test_pull_is_in_place(self):
        items = [1, 2]
        apply('pull(path="l", value=1)', {"l": items})
        assert items == [2]

    def test_pull_non_list_is_noop(self):
        assert apply('pull(path="l", value=1)', {}) == {}
