"""
Mirror loop: continuously forward records from source to sink.

States:
    SEEDING     partitions are being assigned and positioned
    RUNNING     fetch/forward until shutdown or a fatal fetch error
    TERMINATED  final; the loop never returns to SEEDING

Forwarding is best-effort by default: each record is queued on the sink
producer and the next pull starts without waiting for acknowledgment.
With wait_for_delivery the producer is flushed after every non-empty batch.
"""

import asyncio
import logging
from collections.abc import Mapping
from enum import Enum
from typing import Protocol

from core.errors import FetchError, ProduceError
from core.logging import LogContext, PeriodicStatsLogger, log_exception
from topic_mirror.producer import ProduceErrorCallback, log_produce_error
from topic_mirror.types import FetchBatch, MirrorRecord

logger = logging.getLogger(__name__)

__all__ = ["MirrorState", "MirrorLoop"]


class MirrorState(Enum):
    SEEDING = "seeding"
    RUNNING = "running"
    TERMINATED = "terminated"


class RecordSource(Protocol):
    async def assign(self, assignment: Mapping[str, Mapping[int, int]]) -> None: ...

    async def poll_fetch(self) -> FetchBatch: ...


class RecordSink(Protocol):
    async def produce(
        self, record: MirrorRecord, on_error: ProduceErrorCallback | None = None
    ) -> object: ...

    async def flush(self) -> None: ...


class MirrorLoop:
    """Seeds the source consumer, then forwards every fetched record to the sink."""

    def __init__(
        self,
        consumer: RecordSource,
        producer: RecordSink,
        assignment: Mapping[str, Mapping[int, int]],
        shutdown_event: asyncio.Event | None = None,
        wait_for_delivery: bool = False,
        stats_interval_seconds: float = 30.0,
    ):
        self.consumer = consumer
        self.producer = producer
        self.assignment = assignment
        self.shutdown_event = shutdown_event or asyncio.Event()
        self.wait_for_delivery = wait_for_delivery
        self.state = MirrorState.SEEDING

        self.records_forwarded = 0
        self.produce_errors = 0
        self.fetch_errors = 0
        self.batches = 0

        self._stats_logger = PeriodicStatsLogger(
            interval_seconds=stats_interval_seconds,
            get_stats=self.get_stats,
            stage="mirror",
        )

    def get_stats(self) -> dict[str, int]:
        return {
            "records_forwarded": self.records_forwarded,
            "produce_errors": self.produce_errors,
            "fetch_errors": self.fetch_errors,
            "batches": self.batches,
        }

    def _transition(self, state: MirrorState) -> None:
        logger.info(
            "Mirror state %s -> %s",
            self.state.value,
            state.value,
            extra={"state": state.value},
        )
        self.state = state

    def _on_produce_error(self, error: ProduceError) -> None:
        self.produce_errors += 1
        log_produce_error(error)

    async def run(self) -> None:
        """
        Run until shutdown is requested or a fatal fetch error occurs.

        Raises:
            FetchError: On a batch-level fetch failure (state is TERMINATED)
        """
        if self.state is not MirrorState.SEEDING:
            raise RuntimeError(f"Mirror loop cannot be started from state {self.state.value}")

        with LogContext(stage="mirror"):
            try:
                await self.consumer.assign(self.assignment)
                self._transition(MirrorState.RUNNING)
                self._stats_logger.start()

                while not self.shutdown_event.is_set():
                    await self._forward(await self.consumer.poll_fetch())

                logger.info("Shutdown requested, stopping mirror loop")
            except FetchError as e:
                log_exception(logger, e, "Fatal fetch error, stopping mirror loop")
                raise
            finally:
                await self._stats_logger.stop()
                self._transition(MirrorState.TERMINATED)
                logger.info(
                    "Mirror loop finished",
                    extra=self.get_stats(),
                )

    async def _forward(self, batch: FetchBatch) -> None:
        for fetch_error in batch.errors:
            self.fetch_errors += 1
            logger.warning(
                "Partition fetch error",
                extra={
                    "topic": fetch_error.topic,
                    "partition": fetch_error.partition,
                    "error_type": type(fetch_error.error).__name__,
                    "error_message": str(fetch_error.error),
                },
            )

        if not batch.records:
            return

        self.batches += 1
        for record in batch.records:
            await self.producer.produce(record, self._on_produce_error)
            self.records_forwarded += 1

        logger.debug("Forwarded batch", extra={"batch_size": len(batch.records)})

        if self.wait_for_delivery:
            await self.producer.flush()
