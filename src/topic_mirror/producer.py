"""Sink-side producer: fire-and-forget forwarding with per-record error callbacks."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from aiokafka import AIOKafkaProducer

from config.config import BrokerConfig, ProducerSettings
from core.errors import KafkaErrorClassifier, ProduceError
from core.logging import log_exception
from topic_mirror.kafka_config import build_connection_config
from topic_mirror.types import MirrorRecord

logger = logging.getLogger(__name__)

ProduceErrorCallback = Callable[[ProduceError], None]


def log_produce_error(error: ProduceError) -> None:
    """Report a record that could not be delivered to the sink."""
    log_exception(
        logger,
        error,
        "Failed to forward record",
        level=logging.WARNING,
        include_traceback=False,
        topic=error.topic,
        partition=error.partition,
        offset=error.offset,
    )


class SinkProducer:
    """
    Forwards MirrorRecords to the same topic and partition on the sink.

    produce() hands the record to the client's send buffer and returns; the
    delivery outcome is reported only through the error callback. flush()
    waits for everything buffered.
    """

    def __init__(
        self,
        config: BrokerConfig,
        client_id: str,
        settings: ProducerSettings | None = None,
    ):
        self.config = config
        self.client_id = f"{client_id}-sink"
        self.settings = settings or ProducerSettings()
        self._producer: AIOKafkaProducer | None = None
        self._started = False

    def _resolve_acks(self) -> Any:
        acks_value = self.settings.acks
        if isinstance(acks_value, str) and acks_value.lstrip("-").isdigit():
            acks_value = int(acks_value)
        return acks_value

    def _build_kafka_config(self) -> dict:
        return {
            **build_connection_config(self.config, self.client_id),
            "acks": self._resolve_acks(),
            "linger_ms": self.settings.linger_ms,
            "compression_type": self.settings.compression_type,
            "max_batch_size": self.settings.max_batch_size,
        }

    async def start(self) -> None:
        if self._started:
            logger.warning("Producer already started, ignoring duplicate start call")
            return

        kafka_config = self._build_kafka_config()
        logger.info(
            "Starting sink producer",
            extra={
                "bootstrap_servers": self.config.bootstrap_servers,
                "security_protocol": self.config.security_protocol,
                "client_id": self.client_id,
            },
        )

        producer = AIOKafkaProducer(**kafka_config)
        try:
            await producer.start()
        except Exception as e:
            await producer.stop()
            raise KafkaErrorClassifier.classify_admin_error(
                e, "connect", {"cluster": "sink"}
            ) from e
        self._producer = producer
        self._started = True

    async def stop(self) -> None:
        # Errors during stop are logged but not re-raised to avoid masking original exceptions
        if self._producer is None:
            logger.debug("Producer already stopped")
            return

        logger.info("Stopping sink producer")
        try:
            if self._started:
                await self._producer.flush()
            await self._producer.stop()
            logger.info("Sink producer stopped")
        except Exception as e:
            logger.error(
                "Error stopping sink producer",
                extra={"error": str(e)},
                exc_info=True,
            )
        finally:
            self._producer = None
            self._started = False

    async def produce(
        self,
        record: MirrorRecord,
        on_error: ProduceErrorCallback | None = None,
    ) -> asyncio.Future | None:
        """
        Queue one record for the sink without waiting for delivery.

        Waits only when the client's send buffer is full. Failures, whether
        immediate or reported later by the broker, go to on_error (default:
        logged) and are never raised.

        Returns:
            The delivery future, or None if the record could not be queued
        """
        if not self._started or self._producer is None:
            raise RuntimeError("Producer not started. Call start() first.")

        callback = on_error or log_produce_error

        try:
            future = await self._producer.send(
                record.topic,
                value=record.value,
                key=record.key,
                partition=record.partition,
                timestamp_ms=record.timestamp,
                headers=list(record.headers) or None,
            )
        except Exception as e:
            callback(ProduceError(record.topic, record.partition, record.offset, cause=e))
            return None

        def _on_delivery(fut: asyncio.Future) -> None:
            if fut.cancelled():
                error: BaseException = asyncio.CancelledError()
            else:
                error = fut.exception()
                if error is None:
                    return
            callback(ProduceError(record.topic, record.partition, record.offset, cause=error))

        future.add_done_callback(_on_delivery)
        return future

    async def flush(self) -> None:
        """Wait until every queued record is delivered or has failed."""
        if self._producer is None:
            return
        await self._producer.flush()

    @property
    def is_started(self) -> bool:
        return self._started and self._producer is not None


__all__ = ["SinkProducer", "ProduceErrorCallback", "log_produce_error"]
