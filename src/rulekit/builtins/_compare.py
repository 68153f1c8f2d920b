"""Comparison helpers for the built-in catalog."""

from __future__ import annotations

import copy
from collections.abc import Mapping, MutableMapping, MutableSequence
from typing import Any


def is_match(obj: Any, source: Any) -> bool:
    """
    Partial deep comparison.

    Dicts match when every key of ``source`` matches in ``obj``; lists match
    when every element of ``source`` matches some element of ``obj``; other
    values compare with ==.

    Example:
        >>> is_match({"a": 1, "b": {"c": 2, "d": 3}}, {"b": {"c": 2}})
        True
        >>> is_match({"tags": ["x", "y", "z"]}, {"tags": ["z", "x"]})
        True
    """
    if isinstance(source, Mapping):
        if not source:
            return True
        if not isinstance(obj, Mapping):
            return False
        return all(
            key in obj and is_match(obj[key], value) for key, value in source.items()
        )
    if isinstance(source, list):
        if not isinstance(obj, list):
            return False
        return all(any(is_match(item, wanted) for item in obj) for wanted in source)
    return obj == source


def deep_merge(target: Any, source: Any) -> Any:
    """
    Recursively merge ``source`` into ``target`` in place and return it.

    Dicts merge by key and lists by index. Where the shapes differ, the
    source value replaces the target value.
    """
    if isinstance(target, MutableMapping) and isinstance(source, Mapping):
        for key, value in source.items():
            if key in target and _mergeable(target[key], value):
                deep_merge(target[key], value)
            else:
                target[key] = copy.deepcopy(value)
        return target
    if isinstance(target, MutableSequence) and isinstance(source, list):
        for index, value in enumerate(source):
            if index >= len(target):
                target.append(copy.deepcopy(value))
            elif _mergeable(target[index], value):
                deep_merge(target[index], value)
            else:
                target[index] = copy.deepcopy(value)
        return target
    return copy.deepcopy(source)


def _mergeable(a: Any, b: Any) -> bool:
    return (isinstance(a, MutableMapping) and isinstance(b, Mapping)) or (
        isinstance(a, MutableSequence) and isinstance(b, list)
    )
