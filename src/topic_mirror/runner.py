"""Run orchestration: reconcile, resolve offsets, mirror."""

import asyncio
import logging

from config.config import RunConfig
from core.errors import is_configuration_error
from core.logging import LogContext, log_exception
from topic_mirror.admin import KafkaTopicAdmin
from topic_mirror.assigner import resolve_start_offsets
from topic_mirror.consumer import SourceConsumer
from topic_mirror.mirror import MirrorLoop
from topic_mirror.producer import SinkProducer
from topic_mirror.reconciler import TopicReconciler
from topic_mirror.types import TopicMetadata

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def exit_code_for(error: BaseException | None) -> int:
    """Process exit status for how a run ended."""
    if error is None:
        return EXIT_OK
    if is_configuration_error(error):
        return EXIT_CONFIG_ERROR
    return EXIT_FAILURE


async def reconcile_topics(config: RunConfig) -> dict[str, TopicMetadata]:
    """Make the sink's layout match the source; return source metadata."""
    source = KafkaTopicAdmin(config.source, "source", config.client_id)
    sink = KafkaTopicAdmin(
        config.sink, "sink", config.client_id, replication_factor=config.replication_factor
    )
    try:
        await source.start()
        await sink.start()
        reconciler = TopicReconciler(
            source,
            sink,
            timeout_seconds=config.timeout_seconds,
            poll_interval_seconds=config.poll_interval_seconds,
        )
        return await reconciler.reconcile(config.topics)
    finally:
        await sink.stop()
        await source.stop()


async def mirror_topics(
    config: RunConfig,
    assignment: dict[str, dict[int, int]],
    shutdown_event: asyncio.Event,
) -> MirrorLoop:
    """Forward records until shutdown or a fatal fetch error."""
    consumer = SourceConsumer(
        config.source,
        config.client_id,
        fetch_timeout_ms=config.fetch_timeout_ms,
        auto_offset_reset=config.auto_offset_reset,
    )
    producer = SinkProducer(config.sink, config.client_id, config.producer)
    loop = MirrorLoop(
        consumer,
        producer,
        assignment,
        shutdown_event=shutdown_event,
        wait_for_delivery=config.wait_for_delivery,
        stats_interval_seconds=config.stats_interval_seconds,
    )
    try:
        await consumer.start()
        await producer.start()
        await loop.run()
    finally:
        # Producer first: flushes records already fetched
        await producer.stop()
        await consumer.stop()
    return loop


async def run_mirror(config: RunConfig, shutdown_event: asyncio.Event | None = None) -> None:
    """
    Execute one mirror run: reconcile, resolve starting offsets, mirror.

    Returns normally on shutdown; every fatal error propagates.
    """
    shutdown_event = shutdown_event or asyncio.Event()

    metadata = await reconcile_topics(config)
    if shutdown_event.is_set():
        logger.info("Shutdown requested after reconciliation, not starting mirror")
        return

    assignment = resolve_start_offsets(metadata, config.policies, config.default_offset)
    logger.info(
        "Resolved starting offsets",
        extra={"assignment": assignment, "topics": list(config.topics)},
    )

    await mirror_topics(config, assignment, shutdown_event)


async def run(config: RunConfig, shutdown_event: asyncio.Event | None = None) -> int:
    """Run and translate the outcome into an exit code, logging fatal errors."""
    with LogContext(worker_id=config.client_id):
        try:
            await run_mirror(config, shutdown_event)
        except Exception as e:
            log_exception(logger, e, "Topic mirror failed")
            return exit_code_for(e)

    logger.info("Topic mirror shut down cleanly")
    return EXIT_OK


__all__ = [
    "EXIT_OK",
    "EXIT_FAILURE",
    "EXIT_CONFIG_ERROR",
    "exit_code_for",
    "reconcile_topics",
    "mirror_topics",
    "run_mirror",
    "run",
]
