"""Exception hierarchy."""

from __future__ import annotations


class RuleEngineError(Exception):
    """Base class for every error raised by rulekit itself."""


class DocumentError(RuleEngineError, ValueError):
    """
    A condition or effect document is malformed or does not match the
    declarations of the registry it is evaluated against.

    Raised before any evaluation begins.
    """

    def __init__(self, message: str, position: int | None = None):
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


class ConfigurationError(RuleEngineError, ValueError):
    """
    Arguments handed to a resolver cannot be resolved, e.g. both a literal
    and a path reference were given, or a JSON literal does not decode.
    """


class UnknownOperationError(RuleEngineError, LookupError):
    """An effect names an operation that has no registered resolver."""

    def __init__(self, name: str):
        super().__init__(f"Missing resolver for effect '{name}'")
        self.name = name


class RegistryError(RuleEngineError, ValueError):
    """Declarations and resolvers handed to a registry do not line up."""
