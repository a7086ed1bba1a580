"""
Unified exception hierarchy for topic_mirror.

Provides typed exceptions with an error category so the runner can decide
how a failure ends the run (configuration error vs runtime failure) and the
mirror loop can tell fatal errors from per-record ones.
"""

from collections.abc import Iterable

# Import ErrorCategory from canonical source to avoid duplicate enum issues
# (comparing enums from different classes always returns False)
from core.types import ErrorCategory


class MirrorError(Exception):
    """
    Base exception for all mirror errors.

    Attributes:
        message: Human-readable error description
        category: Error classification
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class TransientError(MirrorError):
    """Base class for errors that may clear on their own."""

    category = ErrorCategory.TRANSIENT


class PermanentError(MirrorError):
    """Base class for errors that won't succeed on retry."""

    category = ErrorCategory.PERMANENT


# =============================================================================
# Configuration Errors (raised before any cluster is contacted)
# =============================================================================


class ConfigurationError(PermanentError):
    """Invalid run configuration."""


class FormatError(ConfigurationError):
    """A topic offset spec does not follow the grammar."""

    def __init__(self, token: str, reason: str = "malformed token", spec: str | None = None):
        message = f"Invalid offset spec token {token!r}: {reason}"
        if spec is not None and spec != token:
            message = f"{message} (in {spec!r})"
        super().__init__(message, context={"token": token, "spec": spec})
        self.token = token
        self.spec = spec


class DuplicateTopicError(ConfigurationError):
    """The same topic was requested more than once."""

    def __init__(self, topic: str):
        super().__init__(f"Topic {topic!r} requested more than once", context={"topic": topic})
        self.topic = topic


# =============================================================================
# Reconciliation Errors
# =============================================================================


class MissingTopicsError(PermanentError):
    """Requested topics do not exist on the source cluster."""

    def __init__(self, topics: Iterable[str]):
        self.topics = list(topics)
        super().__init__(
            f"Source topics missing: {', '.join(self.topics)}",
            context={"topics": self.topics},
        )


class BrokerError(MirrorError):
    """An admin or metadata RPC against a cluster failed."""

    def __init__(
        self,
        message: str,
        operation: str,
        cause: Exception | None = None,
        category: ErrorCategory | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, {"operation": operation, **(context or {})})
        self.operation = operation
        if category is not None:
            self.category = category


class ConvergenceTimeoutError(TransientError):
    """Sink metadata did not reflect an admin change within the timeout."""

    def __init__(self, description: str, timeout: float, topics: Iterable[str] = ()):
        self.description = description
        self.timeout = timeout
        self.topics = list(topics)
        super().__init__(
            f"Timed out after {timeout:g}s waiting for {description}",
            context={"topics": self.topics, "timeout_seconds": timeout},
        )


# =============================================================================
# Mirror Loop Errors
# =============================================================================


class FetchError(MirrorError):
    """Batch-level fetch failure; terminates the mirror loop."""


class ProduceError(TransientError):
    """A single record could not be forwarded to the sink."""

    def __init__(self, topic: str, partition: int, offset: int, cause: Exception | None = None):
        super().__init__(
            f"Failed to forward record {topic}[{partition}]@{offset}",
            cause=cause,
            context={"topic": topic, "partition": partition, "offset": offset},
        )
        self.topic = topic
        self.partition = partition
        self.offset = offset


# =============================================================================
# Error Classification Utilities
# =============================================================================


def is_configuration_error(error: Exception) -> bool:
    """True for errors that mean the run was misconfigured rather than failing at runtime."""
    return isinstance(error, (ConfigurationError, MissingTopicsError))


__all__ = [
    "ErrorCategory",
    "MirrorError",
    "TransientError",
    "PermanentError",
    "ConfigurationError",
    "FormatError",
    "DuplicateTopicError",
    "MissingTopicsError",
    "BrokerError",
    "ConvergenceTimeoutError",
    "FetchError",
    "ProduceError",
    "is_configuration_error",
]
