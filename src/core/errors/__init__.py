"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- MirrorError hierarchy for typed exceptions
- Kafka error classifier for aiokafka exceptions
"""

from core.errors.exceptions import (
    BrokerError,
    ConfigurationError,
    ConvergenceTimeoutError,
    DuplicateTopicError,
    # Enums
    ErrorCategory,
    FetchError,
    FormatError,
    MissingTopicsError,
    # Base classes
    MirrorError,
    PermanentError,
    ProduceError,
    TransientError,
    # Classification utilities
    is_configuration_error,
)
from core.errors.kafka_classifier import KafkaErrorClassifier

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "MirrorError",
    "TransientError",
    "PermanentError",
    # Configuration
    "ConfigurationError",
    "FormatError",
    "DuplicateTopicError",
    # Reconciliation
    "MissingTopicsError",
    "BrokerError",
    "ConvergenceTimeoutError",
    # Mirror loop
    "FetchError",
    "ProduceError",
    # Classification utilities
    "is_configuration_error",
    "KafkaErrorClassifier",
]
