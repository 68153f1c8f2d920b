"""Tracing hooks for predicate resolution and effect execution."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar, runtime_checkable

# Optional OpenTelemetry imports - only needed if using OpenTelemetryHook
try:
    from opentelemetry.trace import Status as _Status
    from opentelemetry.trace import StatusCode as _StatusCode
    from opentelemetry.trace import set_span_in_context as _set_span_in_context

    _HAS_OPENTELEMETRY = True
except ImportError:
    _HAS_OPENTELEMETRY = False
    _Status = None
    _StatusCode = None
    _set_span_in_context = None

R = TypeVar("R")

PREDICATE = "predicate"
EFFECT = "effect"


@runtime_checkable
class TraceHook(Protocol):
    """
    Protocol for trace hooks.

    Implement this to integrate with logging, OpenTelemetry, or other
    tracing systems.

    Spans are opened for:
        rule[i]          - one rule's effect list (depth 0)
        operation(name)  - a single effect operation (depth 1)
        predicate(name)  - an actual predicate resolver call (depth = tree depth)

    Cached predicate lookups do not open a span.

    Example:
        class MyHook:
            def on_enter(self, name, ctx, depth):
                print(f"{'  ' * depth}-> {name}")
                return None  # span token

            def on_exit(self, span, name, ok, duration_ms, depth):
                print(f"{'  ' * depth}<- {name} {'ok' if ok else 'false'}")

            def on_error(self, span, name, error, duration_ms, depth):
                print(f"{'  ' * depth}<- {name} ERROR: {error}")
    """

    def on_enter(self, name: str, ctx: Any, depth: int) -> Any:
        """
        Called before a traced step runs.

        Returns:
            Span token to pass to on_exit / on_error (can be None)
        """
        ...

    def on_exit(
        self, span: Any, name: str, ok: bool, duration_ms: float, depth: int
    ) -> None:
        """Called after a step completes. ``ok`` is the predicate result, or True for effects."""
        ...

    def on_error(
        self, span: Any, name: str, error: Exception, duration_ms: float, depth: int
    ) -> None:
        """Called if a step raises. The exception is re-raised afterwards."""
        ...


@dataclass
class TraceConfig:
    """
    Configuration for tracing behavior.

    Attributes:
        predicates: Trace predicate resolver calls
        effects: Trace rule and operation execution
        max_depth: Maximum depth to trace (None = unlimited)
    """

    predicates: bool = True
    effects: bool = True
    max_depth: int | None = None

    def wants(self, kind: str, depth: int) -> bool:
        if self.max_depth is not None and depth > self.max_depth:
            return False
        return self.predicates if kind == PREDICATE else self.effects


# Context variables for scoped tracing
_trace_hook: ContextVar[TraceHook | None] = ContextVar("trace_hook", default=None)
_trace_config: ContextVar[TraceConfig] = ContextVar(
    "trace_config", default=TraceConfig()
)


@contextmanager
def use_tracing(hook: TraceHook, config: TraceConfig | None = None) -> Iterator[None]:
    """
    Context manager to enable tracing for all rule processing in scope.

    Example:
        with use_tracing(LoggingHook(logger)):
            asyncio.run(engine.process_rules(rules, ctx))

        with use_tracing(PrintHook(), TraceConfig(predicates=False)):
            asyncio.run(engine.process_rules(rules, ctx))
    """
    hook_token = _trace_hook.set(hook)
    config_token = _trace_config.set(config or TraceConfig())
    try:
        yield
    finally:
        _trace_hook.reset(hook_token)
        _trace_config.reset(config_token)


async def traced_call(
    kind: str,
    name: str,
    ctx: Any,
    depth: int,
    call: Callable[[], Awaitable[R]],
    outcome: Callable[[R], bool] = bool,
) -> R:
    """Await ``call()``, reporting it to the active hook if any."""
    hook = _trace_hook.get()
    if hook is None or not _trace_config.get().wants(kind, depth):
        return await call()

    span = hook.on_enter(name, ctx, depth)
    start = time.perf_counter()
    try:
        result = await call()
    except Exception as e:
        hook.on_error(span, name, e, (time.perf_counter() - start) * 1000, depth)
        raise
    hook.on_exit(span, name, outcome(result), (time.perf_counter() - start) * 1000, depth)
    return result


# =============================================================================
# Built-in Trace Hooks
# =============================================================================


class PrintHook:
    """
    Simple trace hook that prints to stdout.

    Example:
        with use_tracing(PrintHook()):
            asyncio.run(engine.process_rules(rules, ctx))

        # Output:
        # -> predicate(always)
        # <- predicate(always) ✔ (0.02ms)
        # -> rule[0]
        #   -> operation(add)
        #   <- operation(add) ✔ (0.01ms)
        # <- rule[0] ✔ (0.05ms)
    """

    def __init__(self, indent: str = "  ", show_ctx: bool = False):
        self.indent = indent
        self.show_ctx = show_ctx

    def on_enter(self, name: str, ctx: Any, depth: int) -> float:
        prefix = self.indent * depth
        if self.show_ctx:
            print(f"{prefix}-> {name} | ctx={ctx}")
        else:
            print(f"{prefix}-> {name}")
        return time.perf_counter()

    def on_exit(
        self, span: float, name: str, ok: bool, duration_ms: float, depth: int
    ) -> None:
        prefix = self.indent * depth
        status = "✔" if ok else "✗"
        print(f"{prefix}<- {name} {status} ({duration_ms:.2f}ms)")

    def on_error(
        self, span: float, name: str, error: Exception, duration_ms: float, depth: int
    ) -> None:
        prefix = self.indent * depth
        print(f"{prefix}<- {name} ERROR: {error} ({duration_ms:.2f}ms)")


class LoggingHook:
    """
    Trace hook that logs to a Python logger.

    Example:
        import logging
        logger = logging.getLogger("rulekit")

        with use_tracing(LoggingHook(logger)):
            asyncio.run(engine.process_rules(rules, ctx))
    """

    def __init__(self, logger: logging.Logger, level: int = logging.DEBUG):
        self.logger = logger
        self.level = level

    def on_enter(self, name: str, ctx: Any, depth: int) -> dict:
        span = {"name": name, "depth": depth, "start": time.perf_counter()}
        self.logger.log(self.level, "[ENTER] %s (depth=%d)", name, depth)
        return span

    def on_exit(
        self, span: dict, name: str, ok: bool, duration_ms: float, depth: int
    ) -> None:
        status = "OK" if ok else "FALSE"
        self.logger.log(self.level, "[EXIT] %s -> %s (%.2fms)", name, status, duration_ms)

    def on_error(
        self, span: dict, name: str, error: Exception, duration_ms: float, depth: int
    ) -> None:
        self.logger.error("[ERROR] %s -> %s (%.2fms)", name, error, duration_ms)


# Innermost open span of the running task. Gathered tasks copy the context,
# so concurrent siblings share a parent without seeing each other.
_otel_parent: ContextVar[Any] = ContextVar("otel_parent", default=None)


class OpenTelemetryHook:
    """
    OpenTelemetry trace hook.

    Opens one span per traced step, parented to the innermost span still
    open in the current task, so ``operation(...)`` spans nest under their
    ``rule[i]`` span. Top-level spans start from the ambient OpenTelemetry
    context.

    Requires: pip install opentelemetry-api
    """

    def __init__(self, tracer: Any, *, max_span_depth: int | None = None):
        if not _HAS_OPENTELEMETRY:
            raise ImportError(
                "OpenTelemetry is not installed. "
                "Install it with: pip install opentelemetry-api"
            )
        self.tracer = tracer
        self.max_span_depth = max_span_depth

    def on_enter(self, name: str, ctx: Any, depth: int) -> Any:
        # Guaranteed non-None because __init__ checks _HAS_OPENTELEMETRY
        assert _set_span_in_context is not None

        if self.max_span_depth is not None and depth > self.max_span_depth:
            return None
        parent = _otel_parent.get()
        parent_ctx = _set_span_in_context(parent) if parent is not None else None
        span = self.tracer.start_span(name, context=parent_ctx)
        span.set_attribute("rulekit.name", name)
        span.set_attribute("rulekit.kind", name.split("(", 1)[0].split("[", 1)[0])
        span.set_attribute("rulekit.depth", depth)
        return span, _otel_parent.set(span)

    def on_exit(
        self, span: Any, name: str, ok: bool, duration_ms: float, depth: int
    ) -> None:
        if span is None:
            return
        span, token = span
        _otel_parent.reset(token)
        span.set_attribute("rulekit.result", ok)
        span.set_attribute("rulekit.duration_ms", duration_ms)
        span.end()

    def on_error(
        self, span: Any, name: str, error: Exception, duration_ms: float, depth: int
    ) -> None:
        if span is None:
            return

        # Guaranteed non-None because __init__ checks _HAS_OPENTELEMETRY
        assert _Status is not None
        assert _StatusCode is not None

        span, token = span
        _otel_parent.reset(token)
        span.set_attribute("rulekit.duration_ms", duration_ms)
        span.record_exception(error)
        span.set_status(_Status(_StatusCode.ERROR, str(error)))
        span.end()
