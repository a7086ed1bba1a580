"""
Core types used across modules.

Shared enums used by the error hierarchy and classifiers.
"""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that may clear on their own
                   (e.g., broker not available, request timeouts)
        AUTH: Authentication/authorization failures
              (e.g., SASL handshake rejected, topic authorization failed)
        PERMANENT: Failures that won't succeed on retry
                   (e.g., bad topic spec, invalid partition count)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


__all__ = [
    "ErrorCategory",
]
