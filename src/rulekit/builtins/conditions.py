"""
Built-in predicates.

Every predicate reads the value at ``path`` in the context and compares it
with an expected value given either literally (``value``) or as another
context path (``value_path``).

Example:
    greater_than(path="cart.total", value=100)
    equals_string(path="user.tier", value_path="settings.vip_tier")
    matches_object(path="user", value={"address": {"country": "NL"}})
"""

from __future__ import annotations

import math
import re
from typing import Any

from rulekit._args import decode_json, is_number, resolve_value, to_number
from rulekit._errors import ConfigurationError
from rulekit._paths import get_path
from rulekit._registry import Catalog, Param, ParamType
from rulekit._types import MISSING, Args, Context
from rulekit.builtins._compare import is_match

catalog = Catalog()

PATH = Param("path", ParamType.STRING, required=True, description="Context path to test")
VALUE_PATH = Param(
    "value_path", ParamType.STRING, description="Context path holding the expected value"
)


def _value(type: ParamType) -> Param:
    return Param("value", type, description="Expected value")


def _expected(args: Args, ctx: Context) -> Any:
    return resolve_value(args, ctx)


def _expected_json(args: Args, ctx: Context) -> Any:
    expected = resolve_value(args, ctx)
    if args.get("value") is not None:
        return decode_json(expected)
    return expected


def _actual(args: Args, ctx: Context) -> Any:
    return get_path(ctx, args["path"])


# =============================================================================
# Constants
# =============================================================================


@catalog.declare("always")
def always(args: Args, ctx: Context) -> bool:
    """Always true."""
    return True


@catalog.declare("never")
def never(args: Args, ctx: Context) -> bool:
    """Always false."""
    return False


# =============================================================================
# Equality
# =============================================================================


@catalog.declare(
    "close_to",
    PATH,
    _value(ParamType.NUMBER),
    VALUE_PATH,
    Param("precision", ParamType.INTEGER, default=2, description="Decimal places"),
)
def close_to(args: Args, ctx: Context) -> bool:
    """Value is numerically close to the expected value, to ``precision`` decimals."""
    actual = to_number(_actual(args, ctx))
    expected = to_number(_expected(args, ctx))
    if not (math.isfinite(actual) and math.isfinite(expected)):
        return False
    precision = args["precision"]
    scale = 10 ** (precision + 1)
    delta = math.floor(abs(expected - actual) * scale + 0.5) / scale
    return delta <= 10**-precision / 2


@catalog.declare("equals_number", PATH, _value(ParamType.NUMBER), VALUE_PATH)
def equals_number(args: Args, ctx: Context) -> bool:
    """Value, coerced to a number, equals the expected number."""
    expected = _expected(args, ctx)
    return is_number(expected) and to_number(_actual(args, ctx)) == expected


@catalog.declare("equals_object", PATH, _value(ParamType.JSON), VALUE_PATH)
def equals_object(args: Args, ctx: Context) -> bool:
    """Value is deeply equal to the expected JSON value."""
    return _actual(args, ctx) == _expected_json(args, ctx)


@catalog.declare("equals_string", PATH, _value(ParamType.STRING), VALUE_PATH)
def equals_string(args: Args, ctx: Context) -> bool:
    """Value, converted to a string, equals the expected string."""
    actual = _actual(args, ctx)
    if actual is MISSING:
        return False
    return str(actual) == _expected(args, ctx)


# =============================================================================
# Ordering
# =============================================================================


def _compare(args: Args, ctx: Context) -> tuple[float, float]:
    return to_number(_actual(args, ctx)), to_number(_expected(args, ctx))


@catalog.declare("greater_than", PATH, _value(ParamType.NUMBER), VALUE_PATH)
def greater_than(args: Args, ctx: Context) -> bool:
    """Value is greater than the expected number."""
    actual, expected = _compare(args, ctx)
    return actual > expected


@catalog.declare("greater_than_or_equal", PATH, _value(ParamType.NUMBER), VALUE_PATH)
def greater_than_or_equal(args: Args, ctx: Context) -> bool:
    """Value is greater than or equal to the expected number."""
    actual, expected = _compare(args, ctx)
    return actual >= expected


@catalog.declare("less_than", PATH, _value(ParamType.NUMBER), VALUE_PATH)
def less_than(args: Args, ctx: Context) -> bool:
    """Value is less than the expected number."""
    actual, expected = _compare(args, ctx)
    return actual < expected


@catalog.declare("less_than_or_equal", PATH, _value(ParamType.NUMBER), VALUE_PATH)
def less_than_or_equal(args: Args, ctx: Context) -> bool:
    """Value is less than or equal to the expected number."""
    actual, expected = _compare(args, ctx)
    return actual <= expected


# =============================================================================
# Membership
# =============================================================================


@catalog.declare("includes_number", PATH, _value(ParamType.NUMBER), VALUE_PATH)
def includes_number(args: Args, ctx: Context) -> bool:
    """Value is a list containing the expected number."""
    actual = _actual(args, ctx)
    expected = _expected(args, ctx)
    if not isinstance(actual, list):
        return False
    return any(is_number(item) and item == expected for item in actual)


@catalog.declare("includes_object", PATH, _value(ParamType.JSON), VALUE_PATH)
def includes_object(args: Args, ctx: Context) -> bool:
    """Value is a list with an element that partially matches the expected object."""
    actual = _actual(args, ctx)
    expected = _expected_json(args, ctx)
    if not isinstance(actual, list):
        return False
    return any(is_match(item, expected) for item in actual)


@catalog.declare("includes_string", PATH, _value(ParamType.STRING), VALUE_PATH)
def includes_string(args: Args, ctx: Context) -> bool:
    """Value is a list containing the expected string."""
    actual = _actual(args, ctx)
    expected = _expected(args, ctx)
    if not isinstance(actual, list):
        return False
    return any(isinstance(item, str) and item == expected for item in actual)


# =============================================================================
# Presence
# =============================================================================


@catalog.declare("is_falsy", PATH)
def is_falsy(args: Args, ctx: Context) -> bool:
    """Value is missing or falsy."""
    return not _actual(args, ctx)


@catalog.declare("is_truthy", PATH)
def is_truthy(args: Args, ctx: Context) -> bool:
    """Value is present and truthy."""
    return bool(_actual(args, ctx))


@catalog.declare("is_null", PATH)
def is_null(args: Args, ctx: Context) -> bool:
    """Value is present and null."""
    return _actual(args, ctx) is None


@catalog.declare("is_missing", PATH)
def is_missing(args: Args, ctx: Context) -> bool:
    """Nothing exists at the path."""
    return _actual(args, ctx) is MISSING


# =============================================================================
# Patterns
# =============================================================================


@catalog.declare("matches_object", PATH, _value(ParamType.JSON), VALUE_PATH)
def matches_object(args: Args, ctx: Context) -> bool:
    """Value partially matches the expected object."""
    return is_match(_actual(args, ctx), _expected_json(args, ctx))


_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    # Accepted for compatibility, no effect on a single search
    "g": 0,
    "u": 0,
    "y": 0,
}


def _regex_flags(letters: str) -> int:
    flags = 0
    for letter in letters:
        if letter not in _REGEX_FLAGS:
            raise ConfigurationError(f"Unknown regex flag '{letter}'")
        flags |= _REGEX_FLAGS[letter]
    return flags


@catalog.declare(
    "matches_regex",
    PATH,
    _value(ParamType.STRING),
    VALUE_PATH,
    Param("flags", ParamType.STRING, default="", description="Regex flags, e.g. 'i'"),
)
def matches_regex(args: Args, ctx: Context) -> bool:
    """Value, converted to a string, contains a match for the expected pattern."""
    actual = _actual(args, ctx)
    if actual is MISSING:
        return False
    pattern = _expected(args, ctx)
    if not isinstance(pattern, str):
        return False
    try:
        compiled = re.compile(pattern, _regex_flags(args["flags"] or ""))
    except re.error as e:
        raise ConfigurationError(f"Invalid regex {pattern!r}: {e}") from e
    return compiled.search(str(actual)) is not None


CONDITIONS = catalog.build()
