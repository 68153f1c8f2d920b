"""Argument helpers shared by resolvers."""

from __future__ import annotations

import json
import math
from typing import Any

from rulekit._errors import ConfigurationError
from rulekit._paths import get_path
from rulekit._types import MISSING, Args, Context


def resolve_value(
    args: Args,
    context: Context,
    literal: str = "value",
    reference: str = "value_path",
    required: bool = True,
) -> Any:
    """
    Resolve an argument given either as a literal or as a context path.

    Exactly one of ``args[literal]`` and ``args[reference]`` may be supplied
    (None counts as not supplied). A reference to a missing path resolves to
    MISSING.

    Raises:
        ConfigurationError: both were supplied, or neither while required
    """
    has_literal = args.get(literal) is not None
    has_reference = args.get(reference) is not None
    if has_literal and has_reference:
        raise ConfigurationError(f"Cannot provide both {literal} and {reference}")
    if has_literal:
        return args[literal]
    if has_reference:
        return get_path(context, args[reference])
    if required:
        raise ConfigurationError(f"One of {literal} or {reference} is required")
    return MISSING


def decode_json(raw: Any) -> Any:
    """
    Decode a JSON-typed argument.

    Strings are parsed as JSON; structured literals (lists, dicts, numbers)
    from the DSL are returned unchanged.
    """
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON. Did you remember to escape double quotes? Received: {raw!r}"
        ) from e


def to_number(value: Any) -> float | int:
    """
    Loose numeric coercion for comparisons; returns NaN when not numeric.

    Booleans count as 0/1, None as 0 and numeric strings are parsed.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def is_number(value: Any) -> bool:
    """Strict check: an int or float that is not a bool."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)
