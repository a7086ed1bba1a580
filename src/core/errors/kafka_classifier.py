"""
Kafka error classification for admin, consumer and producer operations.

Provides consistent error handling for aiokafka exceptions, mapping them to
an ErrorCategory and deciding whether a fetch error is scoped to a partition
(reported, mirroring continues) or fatal for the fetch session.
"""

from aiokafka.structs import TopicPartition

from core.errors.exceptions import BrokerError, FetchError, MirrorError
from core.types import ErrorCategory

# Kafka error classifications based on aiokafka exception types
KAFKA_ERROR_MAPPINGS = {
    # Transient errors (may clear on their own)
    "transient": [
        "BrokerNotAvailableError",
        "KafkaConnectionError",
        "NodeNotReadyError",
        "LeaderNotAvailableError",
        "NotLeaderForPartitionError",
        "NotControllerError",
        "RequestTimedOutError",
        "KafkaTimeoutError",
        "NetworkException",
        "CorrelationIdError",
        "CoordinatorNotAvailableError",
    ],
    # Auth errors
    "auth": [
        "TopicAuthorizationFailedError",
        "ClusterAuthorizationFailedError",
        "SaslAuthenticationError",
        "SaslAuthenticationFailedError",
    ],
    # Permanent errors
    "permanent": [
        "UnknownTopicOrPartitionError",
        "TopicAlreadyExistsError",
        "MessageSizeTooLargeError",
        "RecordTooLargeError",
        "InvalidTopicError",
        "InvalidConfigurationError",
        "InvalidPartitionsError",
        "InvalidReplicationFactorError",
        "InvalidRequestError",
        "UnsupportedVersionError",
        "PolicyViolationError",
        "TopicDeletionDisabledError",
        "IllegalStateError",
        "OffsetOutOfRangeError",
        "RecordBatchTooLargeError",
        "CorruptRecordException",
    ],
}

# Fetch errors aiokafka raises for individual partitions while the rest of the
# fetch session stays healthy.
PARTITION_FETCH_ERRORS = frozenset(
    {
        "OffsetOutOfRangeError",
        "RecordTooLargeError",
        "TopicAuthorizationFailedError",
        "UnknownTopicOrPartitionError",
        "NotLeaderForPartitionError",
        "CorruptRecordException",
        "InvalidMessageError",
    }
)

_CATEGORY_BY_NAME = {
    "transient": ErrorCategory.TRANSIENT,
    "auth": ErrorCategory.AUTH,
    "permanent": ErrorCategory.PERMANENT,
}


def classify_kafka_error_type(error_type_name: str) -> str | None:
    """
    Classify Kafka error by exception type name.

    Args:
        error_type_name: Name of the exception class

    Returns:
        Error category: "transient", "auth", "permanent", or None
    """
    for category, error_types in KAFKA_ERROR_MAPPINGS.items():
        if error_type_name in error_types:
            return category
    return None


class KafkaErrorClassifier:
    """
    Centralized error classification for Kafka operations.

    Maps aiokafka exceptions to the MirrorError hierarchy.
    """

    @staticmethod
    def classify_error(error: Exception) -> ErrorCategory:
        if isinstance(error, MirrorError):
            return error.category

        category = classify_kafka_error_type(type(error).__name__)
        if category is not None:
            return _CATEGORY_BY_NAME[category]

        # String-based fallback classification
        error_str = str(error).lower()
        if any(marker in error_str for marker in ("unauthorized", "authentication", "authorization")):
            return ErrorCategory.AUTH
        if any(marker in error_str for marker in ("timeout", "connection", "not available")):
            return ErrorCategory.TRANSIENT
        if isinstance(error, (TimeoutError, ConnectionError, OSError)):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.UNKNOWN

    @classmethod
    def classify_admin_error(
        cls, error: Exception, operation: str, context: dict | None = None
    ) -> BrokerError:
        """
        Wrap an admin/metadata RPC failure in a BrokerError.

        Args:
            error: Original exception from aiokafka
            operation: Admin operation name (list_topics, delete_topics, create_topic)
            context: Additional context (topics etc.)

        Returns:
            BrokerError carrying the classified category
        """
        if isinstance(error, BrokerError):
            return error

        return BrokerError(
            f"Kafka {operation} failed: {str(error) or type(error).__name__}",
            operation=operation,
            cause=error,
            category=cls.classify_error(error),
            context=context,
        )

    @staticmethod
    def is_partition_fetch_error(error: Exception) -> bool:
        """True when a fetch error only affects specific partitions."""
        return type(error).__name__ in PARTITION_FETCH_ERRORS

    @staticmethod
    def partitions_of(error: Exception) -> list[TopicPartition]:
        """
        Extract the partitions a fetch error refers to.

        aiokafka passes affected partitions as the first argument for
        OffsetOutOfRangeError/RecordTooLargeError (a {TopicPartition: offset}
        mapping) and TopicAuthorizationFailedError (a set of topics).
        """
        if not error.args:
            return []

        payload = error.args[0]
        if isinstance(payload, dict):
            return [tp for tp in payload if isinstance(tp, TopicPartition)]
        if isinstance(payload, (set, frozenset, list, tuple)):
            return [tp for tp in payload if isinstance(tp, TopicPartition)]
        if isinstance(payload, TopicPartition):
            return [payload]
        return []

    @classmethod
    def classify_fetch_error(cls, error: Exception, context: dict | None = None) -> FetchError:
        """Wrap a batch-level fetch failure in a FetchError."""
        if isinstance(error, FetchError):
            return error

        fetch_error = FetchError(
            f"Kafka fetch failed: {str(error) or type(error).__name__}",
            cause=error,
            context={"service": "kafka_consumer", **(context or {})},
        )
        fetch_error.category = cls.classify_error(error)
        return fetch_error


__all__ = [
    "KAFKA_ERROR_MAPPINGS",
    "PARTITION_FETCH_ERRORS",
    "KafkaErrorClassifier",
    "classify_kafka_error_type",
]
