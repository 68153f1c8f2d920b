"""Declarations, resolvers and the resolver registry."""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from rulekit._errors import DocumentError, RegistryError
from rulekit._types import MISSING, Args, Context, ResolverFn


class ParamType(str, Enum):
    """Types an argument can be declared with."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    JSON = "json"
    ANY = "any"

    def accepts(self, value: Any) -> bool:
        if value is None or self in (ParamType.ANY, ParamType.JSON):
            return True
        if self is ParamType.STRING:
            return isinstance(value, str)
        if self is ParamType.BOOLEAN:
            return isinstance(value, bool)
        if isinstance(value, bool):
            return False
        if self is ParamType.INTEGER:
            return isinstance(value, int)
        return isinstance(value, (int, float))


@dataclass(frozen=True)
class Param:
    """
    A declared argument.

    Attributes:
        name: Argument name as written in documents
        type: Accepted literal type (None is accepted for optional params)
        required: Whether documents must supply it
        default: Value bound when the argument is omitted (MISSING = none)
        description: Human-readable description
    """

    name: str
    type: ParamType = ParamType.ANY
    required: bool = False
    default: Any = MISSING
    description: str = ""


@dataclass(frozen=True)
class Declaration:
    """The name and argument schema of a predicate or operation."""

    name: str
    params: tuple[Param, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", tuple(self.params))
        seen: set[str] = set()
        for param in self.params:
            if param.name in seen:
                raise RegistryError(f"Duplicate parameter '{param.name}' on '{self.name}'")
            seen.add(param.name)

    def param(self, name: str) -> Param | None:
        for param in self.params:
            if param.name == name:
                return param
        return None

    def bind(self, args: Mapping[str, Any]) -> dict[str, Any]:
        """
        Check ``args`` against the schema and fill in defaults.

        Raises:
            DocumentError: unknown argument, missing required argument or a
                literal of the wrong type
        """
        for key in args:
            if self.param(key) is None:
                raise DocumentError(f"Unknown argument '{key}' on '{self.name}'")

        bound: dict[str, Any] = {}
        for param in self.params:
            if param.name in args:
                value = args[param.name]
                if param.required and value is None:
                    raise DocumentError(
                        f"Argument '{param.name}' on '{self.name}' must not be null"
                    )
                if not param.type.accepts(value):
                    raise DocumentError(
                        f"Argument '{param.name}' on '{self.name}' expected "
                        f"{param.type.value}, got {value!r}"
                    )
                bound[param.name] = value
            elif param.default is not MISSING:
                bound[param.name] = param.default
            elif param.required:
                raise DocumentError(
                    f"Argument '{param.name}' of type {param.type.value} is required "
                    f"but was not provided for '{self.name}'"
                )
        return bound


@dataclass(frozen=True)
class Resolver:
    """
    A declaration paired with the function that implements it.

    Calling a resolver always returns an awaitable, whether ``fn`` is a
    plain function or a coroutine function.
    """

    declaration: Declaration
    fn: ResolverFn

    @property
    def name(self) -> str:
        return self.declaration.name

    async def __call__(self, args: Args, context: Context) -> Any:
        result = self.fn(args, context)
        if inspect.isawaitable(result):
            result = await result
        return result

    def __repr__(self) -> str:
        return f"Resolver({self.name})"


class ResolverRegistry:
    """
    Mapping from predicate/operation name to its Resolver.

    Construction checks that declarations and resolvers line up in both
    directions: a declared name without a resolver, or a resolver without a
    declaration, raises RegistryError.

    Example:
        registry = ResolverRegistry(
            [Declaration("is_vip", (Param("path", ParamType.STRING, required=True),))],
            {"is_vip": lambda args, ctx: get_path(ctx, args["path"]) == "vip"},
        )
    """

    def __init__(
        self,
        declarations: Iterable[Declaration] = (),
        resolvers: Mapping[str, ResolverFn] | None = None,
    ):
        resolvers = dict(resolvers or {})
        declared: dict[str, Declaration] = {}
        for declaration in declarations:
            if declaration.name in declared:
                raise RegistryError(f"Duplicate declaration for '{declaration.name}'")
            declared[declaration.name] = declaration

        for name in declared:
            if name not in resolvers:
                raise RegistryError(f"Missing resolver for declared field '{name}'")
        for name, fn in resolvers.items():
            if name not in declared:
                raise RegistryError(
                    f"Resolver defined for '{name}' but no such declaration exists"
                )
            if not callable(fn):
                raise RegistryError(f"Resolver for '{name}' is not callable")

        self._resolvers: dict[str, Resolver] = {
            name: Resolver(declaration, resolvers[name])
            for name, declaration in declared.items()
        }

    def get(self, name: str) -> Resolver | None:
        return self._resolvers.get(name)

    def declaration(self, name: str) -> Declaration | None:
        resolver = self._resolvers.get(name)
        return resolver.declaration if resolver is not None else None

    @property
    def declarations(self) -> list[Declaration]:
        return [r.declaration for r in self._resolvers.values()]

    def extend(
        self,
        declarations: Iterable[Declaration] = (),
        resolvers: Mapping[str, ResolverFn] | None = None,
    ) -> ResolverRegistry:
        """
        Return a new registry with additional entries.

        The additions are checked for completeness on their own, then merged
        over this registry's entries (an addition may replace an entry).
        """
        other = ResolverRegistry(declarations, resolvers)
        return self.merge(other)

    def merge(self, other: ResolverRegistry) -> ResolverRegistry:
        """Return a new registry with ``other``'s entries taking precedence."""
        merged = ResolverRegistry()
        merged._resolvers = {**self._resolvers, **other._resolvers}
        return merged

    def __contains__(self, name: object) -> bool:
        return name in self._resolvers

    def __iter__(self) -> Iterator[str]:
        return iter(self._resolvers)

    def __len__(self) -> int:
        return len(self._resolvers)

    def __repr__(self) -> str:
        return f"ResolverRegistry({', '.join(sorted(self._resolvers))})"


class Catalog:
    """
    Collects declarations and resolvers with a decorator, then builds a registry.

    Example:
        catalog = Catalog()

        @catalog.declare("is_vip", Param("path", ParamType.STRING, required=True))
        def is_vip(args, ctx):
            return get_path(ctx, args["path"]) == "vip"

        registry = catalog.build()
    """

    def __init__(self) -> None:
        self.declarations: list[Declaration] = []
        self.resolvers: dict[str, ResolverFn] = {}

    def declare(
        self, name: str, *params: Param, description: str = ""
    ) -> Callable[[ResolverFn], ResolverFn]:
        """Decorator registering ``fn`` as the resolver for ``name``."""

        def decorator(fn: ResolverFn) -> ResolverFn:
            self.declarations.append(
                Declaration(name, params, description or inspect.getdoc(fn) or "")
            )
            self.resolvers[name] = fn
            return fn

        return decorator

    def build(self) -> ResolverRegistry:
        return ResolverRegistry(self.declarations, self.resolvers)
