"""Data types shared by the reconciler, assigner and mirror loop."""

from dataclasses import dataclass, field

__all__ = [
    "PartitionMetadata",
    "TopicMetadata",
    "ReconciliationPlan",
    "MirrorRecord",
    "PartitionFetchError",
    "FetchBatch",
    "from_consumer_record",
]


@dataclass(frozen=True)
class PartitionMetadata:
    """One partition of a topic as reported by cluster metadata."""

    index: int
    leader: int | None = None


@dataclass(frozen=True)
class TopicMetadata:
    """Topic name plus its partitions, ordered by index."""

    name: str
    partitions: tuple[PartitionMetadata, ...] = ()

    @property
    def partition_count(self) -> int:
        return len(self.partitions)

    @classmethod
    def with_partitions(cls, name: str, count: int) -> "TopicMetadata":
        """Build metadata for a topic with `count` contiguous partitions."""
        return cls(name, tuple(PartitionMetadata(index) for index in range(count)))


@dataclass(frozen=True)
class ReconciliationPlan:
    """Sink changes needed to match the source layout."""

    topics_to_delete: tuple[str, ...] = ()
    # topic -> partition count, in request order
    topics_to_create: tuple[tuple[str, int], ...] = ()

    @property
    def create_counts(self) -> dict[str, int]:
        return dict(self.topics_to_create)


@dataclass(frozen=True)
class MirrorRecord:
    """A record read from the source, forwarded unchanged to the sink."""

    topic: str
    partition: int
    offset: int
    timestamp: int | None
    key: bytes | None = None
    value: bytes | None = None
    headers: list[tuple[str, bytes]] = field(default_factory=list)


@dataclass(frozen=True)
class PartitionFetchError:
    """A fetch error scoped to one partition; mirroring continues."""

    topic: str
    partition: int
    error: Exception


@dataclass
class FetchBatch:
    """Result of one bounded pull from the source."""

    records: list[MirrorRecord] = field(default_factory=list)
    errors: list[PartitionFetchError] = field(default_factory=list)


def from_consumer_record(record) -> MirrorRecord:
    """Convert aiokafka ConsumerRecord to MirrorRecord."""
    headers = []
    if getattr(record, "headers", None):
        headers = [(k, v) for k, v in record.headers]

    return MirrorRecord(
        topic=record.topic,
        partition=record.partition,
        offset=record.offset,
        timestamp=record.timestamp,
        key=record.key,
        value=record.value,
        headers=headers,
    )
