"""Source-side consumer: manual partition assignment, bounded fetches."""

import itertools
import logging
from collections.abc import Mapping

from aiokafka import AIOKafkaConsumer
from aiokafka.structs import TopicPartition

from config.config import BrokerConfig
from core.errors import KafkaErrorClassifier
from topic_mirror.kafka_config import build_connection_config
from topic_mirror.offsets import OFFSET_BEGINNING, OFFSET_END
from topic_mirror.types import FetchBatch, PartitionFetchError, from_consumer_record

logger = logging.getLogger(__name__)


def _partition_errors(error: Exception) -> list[PartitionFetchError]:
    """Split a partition-scoped fetch exception into per-partition entries."""
    partitions = KafkaErrorClassifier.partitions_of(error)
    if partitions:
        return [PartitionFetchError(tp.topic, tp.partition, error) for tp in partitions]

    # TopicAuthorizationFailedError carries topic names, not partitions
    payload = error.args[0] if error.args else None
    if isinstance(payload, (set, frozenset, list, tuple)):
        topics = sorted(str(topic) for topic in payload)
        if topics:
            return [PartitionFetchError(topic, -1, error) for topic in topics]
    return [PartitionFetchError("", -1, error)]


class SourceConsumer:
    """
    Reads records from explicitly assigned source partitions.

    No consumer group is used: positions are seeded from the resolved
    starting offsets and never committed.
    """

    def __init__(
        self,
        config: BrokerConfig,
        client_id: str,
        fetch_timeout_ms: int = 1000,
        auto_offset_reset: str = "earliest",
        max_poll_records: int = 500,
    ):
        self.config = config
        self.client_id = f"{client_id}-source"
        self.fetch_timeout_ms = fetch_timeout_ms
        self.auto_offset_reset = auto_offset_reset
        self.max_poll_records = max_poll_records
        self._consumer: AIOKafkaConsumer | None = None

    def _build_kafka_config(self) -> dict:
        """Build the AIOKafkaConsumer configuration dict."""
        return {
            **build_connection_config(self.config, self.client_id),
            "group_id": None,
            "enable_auto_commit": False,
            "auto_offset_reset": self.auto_offset_reset,
            "max_poll_records": self.max_poll_records,
        }

    async def start(self) -> None:
        if self._consumer is not None:
            logger.warning("Consumer already running, ignoring duplicate start call")
            return

        logger.info(
            "Starting source consumer",
            extra={
                "bootstrap_servers": self.config.bootstrap_servers,
                "client_id": self.client_id,
            },
        )
        consumer = AIOKafkaConsumer(**self._build_kafka_config())
        try:
            await consumer.start()
        except Exception as e:
            await consumer.stop()
            raise KafkaErrorClassifier.classify_admin_error(
                e, "connect", {"cluster": "source"}
            ) from e
        self._consumer = consumer

    async def stop(self) -> None:
        if self._consumer is None:
            logger.debug("Consumer not running or already stopped")
            return

        logger.info("Stopping source consumer")
        try:
            await self._consumer.stop()
        finally:
            self._consumer = None

    def _client(self) -> AIOKafkaConsumer:
        if self._consumer is None:
            raise RuntimeError("Consumer not started. Call start() first.")
        return self._consumer

    async def assign(self, assignment: Mapping[str, Mapping[int, int]]) -> None:
        """
        Assign partitions and seek each to its starting offset.

        OFFSET_BEGINNING and OFFSET_END seek to the start or end of the log;
        other values are concrete offsets.
        """
        consumer = self._client()
        partitions = [
            TopicPartition(topic, partition)
            for topic, offsets in assignment.items()
            for partition in offsets
        ]
        consumer.assign(partitions)

        to_beginning: list[TopicPartition] = []
        to_end: list[TopicPartition] = []
        for tp in partitions:
            offset = assignment[tp.topic][tp.partition]
            if offset == OFFSET_BEGINNING:
                to_beginning.append(tp)
            elif offset == OFFSET_END:
                to_end.append(tp)
            else:
                consumer.seek(tp, offset)

        if to_beginning:
            await consumer.seek_to_beginning(*to_beginning)
        if to_end:
            await consumer.seek_to_end(*to_end)

        logger.info(
            "Assigned source partitions",
            extra={
                "partition_count": len(partitions),
                "assignment": {
                    topic: dict(offsets) for topic, offsets in assignment.items()
                },
            },
        )

    async def poll_fetch(self) -> FetchBatch:
        """
        Pull the next records, waiting at most fetch_timeout_ms.

        Partition-scoped fetch errors are returned in the batch; anything else
        is raised as FetchError.
        """
        consumer = self._client()
        try:
            data = await consumer.getmany(timeout_ms=self.fetch_timeout_ms)
        except Exception as e:
            if KafkaErrorClassifier.is_partition_fetch_error(e):
                return FetchBatch(errors=_partition_errors(e))
            raise KafkaErrorClassifier.classify_fetch_error(e) from e

        records = [
            from_consumer_record(record)
            for record in itertools.chain.from_iterable(data.values())
        ]
        return FetchBatch(records=records)


__all__ = ["SourceConsumer"]
