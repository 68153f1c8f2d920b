"""
Built-in operations.

Each operation updates the value at ``path`` in the context in place.
Numeric operations raise TypeError when the current value is not a number.

Example:
    add(path="cart.total", value=5)
    multiply(path="cart.total", value_path="discounts.factor")
    concat(path="user.tags", value=["vip"])
"""

from __future__ import annotations

import copy
import math
from collections.abc import Mapping
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal, localcontext
from typing import Any

from rulekit._args import decode_json, is_number, resolve_value
from rulekit._paths import get_path, set_path, unset_path
from rulekit._registry import Catalog, Param, ParamType
from rulekit._types import MISSING, Args, Context
from rulekit.builtins._compare import deep_merge, is_match

catalog = Catalog()

PATH = Param("path", ParamType.STRING, required=True, description="Context path to update")
NUMBER = Param("value", ParamType.NUMBER, description="Operand")
NUMBER_PATH = Param("value_path", ParamType.STRING, description="Context path holding the operand")
JSON = Param("value", ParamType.JSON, required=True, description="JSON value")
PRECISION = Param("precision", ParamType.INTEGER, default=0, description="Decimal places")


def _number_at(ctx: Context, path: str, action: str) -> int | float:
    value = get_path(ctx, path)
    if not is_number(value):
        raise TypeError(f"Can't {action} because {value!r} at {path} is not a number")
    return value


def _operand(args: Args, ctx: Context, action: str) -> int | float:
    value = resolve_value(args, ctx)
    if not is_number(value):
        raise TypeError(f"Can't {action} because the provided value {value!r} is not a number")
    return value


def _arithmetic(args: Args, ctx: Context, action: str) -> tuple[int | float, int | float]:
    return _number_at(ctx, args["path"], action), _operand(args, ctx, action)


def _json_value(args: Args) -> Any:
    # Structured literals belong to the parsed rule and must not be shared
    return copy.deepcopy(decode_json(args["value"]))


# =============================================================================
# Arithmetic
# =============================================================================


@catalog.declare("add", PATH, NUMBER, NUMBER_PATH)
def add(args: Args, ctx: Context) -> None:
    """Add the value to the number at the path."""
    initial, value = _arithmetic(args, ctx, "add")
    set_path(ctx, args["path"], initial + value)


@catalog.declare("subtract", PATH, NUMBER, NUMBER_PATH)
def subtract(args: Args, ctx: Context) -> None:
    """Subtract the value from the number at the path."""
    initial, value = _arithmetic(args, ctx, "subtract")
    set_path(ctx, args["path"], initial - value)


@catalog.declare("multiply", PATH, NUMBER, NUMBER_PATH)
def multiply(args: Args, ctx: Context) -> None:
    """Multiply the number at the path by the value."""
    initial, value = _arithmetic(args, ctx, "multiply")
    set_path(ctx, args["path"], initial * value)


@catalog.declare("divide", PATH, NUMBER, NUMBER_PATH)
def divide(args: Args, ctx: Context) -> None:
    """Divide the number at the path by the value."""
    initial, value = _arithmetic(args, ctx, "divide")
    if value == 0:
        raise ZeroDivisionError("Can't divide because provided value is 0")
    set_path(ctx, args["path"], initial / value)


@catalog.declare("max", PATH, NUMBER, NUMBER_PATH)
def maximum(args: Args, ctx: Context) -> None:
    """Replace the number at the path with the larger of it and the value."""
    initial, value = _arithmetic(args, ctx, "max")
    set_path(ctx, args["path"], max(initial, value))


@catalog.declare("min", PATH, NUMBER, NUMBER_PATH)
def minimum(args: Args, ctx: Context) -> None:
    """Replace the number at the path with the smaller of it and the value."""
    initial, value = _arithmetic(args, ctx, "min")
    set_path(ctx, args["path"], min(initial, value))


@catalog.declare(
    "clamp",
    PATH,
    Param("lower", ParamType.NUMBER, required=True, description="Lower bound"),
    Param("upper", ParamType.NUMBER, required=True, description="Upper bound"),
)
def clamp(args: Args, ctx: Context) -> None:
    """Clamp the number at the path between ``lower`` and ``upper``."""
    initial = _number_at(ctx, args["path"], "clamp")
    set_path(ctx, args["path"], min(max(initial, args["lower"]), args["upper"]))


# =============================================================================
# Rounding
# =============================================================================


def round_to(value: int | float, precision: int, rounding: str) -> int | float:
    """
    Round ``value`` to ``precision`` decimal places using a decimal rounding mode.

    Negative precision rounds to tens, hundreds and so on. The result is an
    int when ``precision`` is 0 or less.

    Example:
        >>> round_to(4.006, 2, ROUND_HALF_UP)
        4.01
        >>> round_to(4060, -2, ROUND_CEILING)
        4100
    """
    if isinstance(value, float) and not math.isfinite(value):
        return value
    exact = Decimal(repr(value))
    exponent = Decimal(1).scaleb(-precision)
    with localcontext() as decimal_ctx:
        # Enough digits for the integer part plus the requested places
        decimal_ctx.prec = max(decimal_ctx.prec, exact.adjusted() + precision + 2)
        rounded = exact.quantize(exponent, rounding=rounding)
    return int(rounded) if precision <= 0 else float(rounded)


def _rounding(args: Args, ctx: Context, action: str, rounding: str) -> None:
    initial = _number_at(ctx, args["path"], action)
    set_path(ctx, args["path"], round_to(initial, args["precision"], rounding))


@catalog.declare("round", PATH, PRECISION)
def round_(args: Args, ctx: Context) -> None:
    """Round the number at the path, halves away from zero."""
    _rounding(args, ctx, "round", ROUND_HALF_UP)


@catalog.declare("ceiling", PATH, PRECISION)
def ceiling(args: Args, ctx: Context) -> None:
    """Round the number at the path up."""
    _rounding(args, ctx, "ceiling", ROUND_CEILING)


@catalog.declare("floor", PATH, PRECISION)
def floor(args: Args, ctx: Context) -> None:
    """Round the number at the path down."""
    _rounding(args, ctx, "floor", ROUND_FLOOR)


# =============================================================================
# Values
# =============================================================================


@catalog.declare("set", PATH, Param("value", ParamType.JSON), NUMBER_PATH)
def set_(args: Args, ctx: Context) -> None:
    """Set the path to a JSON value, or to a copy of the value at ``value_path``."""
    value = copy.deepcopy(resolve_value(args, ctx))
    if args.get("value") is not None:
        value = decode_json(value)
    elif value is MISSING:
        value = None
    set_path(ctx, args["path"], value)


@catalog.declare("unset", PATH)
def unset(args: Args, ctx: Context) -> None:
    """Remove the path from the context."""
    unset_path(ctx, args["path"])


@catalog.declare("default", PATH, JSON)
def default(args: Args, ctx: Context) -> None:
    """Set the path to a JSON value only when nothing is there yet."""
    if get_path(ctx, args["path"]) is not MISSING:
        return
    set_path(ctx, args["path"], _json_value(args))


@catalog.declare("merge", PATH, JSON)
def merge(args: Args, ctx: Context) -> None:
    """Deep merge a JSON object into the object at the path."""
    value = _json_value(args)
    if not isinstance(value, (dict, list)):
        raise TypeError(f"Can only merge two objects, got {value!r}")
    initial = get_path(ctx, args["path"])
    if initial is MISSING or initial is None:
        set_path(ctx, args["path"], copy.deepcopy(value))
        return
    if not isinstance(initial, (dict, list)):
        raise TypeError(f"Can only merge two objects, {initial!r} at {args['path']} is not one")
    set_path(ctx, args["path"], deep_merge(initial, value))


# =============================================================================
# Lists
# =============================================================================


@catalog.declare("concat", PATH, JSON)
def concat(args: Args, ctx: Context) -> None:
    """Append a JSON value (or each element of a JSON list) to the list at the path."""
    initial = get_path(ctx, args["path"])
    if initial is MISSING or initial is None:
        initial = []
    elif not isinstance(initial, list):
        initial = [initial]
    value = _json_value(args)
    set_path(ctx, args["path"], initial + (value if isinstance(value, list) else [value]))


def _comparator(value: Any):
    return is_match if isinstance(value, Mapping) else (lambda a, b: a == b)


@catalog.declare("filter", PATH, JSON)
def filter_(args: Args, ctx: Context) -> None:
    """Keep the elements of the list at the path that match the JSON value."""
    initial = get_path(ctx, args["path"])
    if not isinstance(initial, list):
        return
    value = _json_value(args)
    matches = _comparator(value)
    set_path(ctx, args["path"], [item for item in initial if matches(item, value)])


@catalog.declare("pull", PATH, JSON)
def pull(args: Args, ctx: Context) -> None:
    """
    Remove elements matching the JSON value from the list at the path.

    A list value removes every element equal to any of its items.
    """
    initial = get_path(ctx, args["path"])
    if not isinstance(initial, list):
        return
    value = _json_value(args)
    matches = _comparator(value)
    candidates = value if isinstance(value, list) else [value]
    initial[:] = [
        item for item in initial if not any(matches(item, c) for c in candidates)
    ]


EFFECTS = catalog.build()
