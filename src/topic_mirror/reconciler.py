"""
Topic reconciliation: make the sink's topic layout match the source.

Partition counts cannot be lowered (or portably changed) in place, so every
requested topic already present on the sink is deleted and recreated with
the source's partition count. Cluster metadata is eventually consistent;
after each admin change the sink is polled until the change is visible.
"""

import asyncio
import logging
from collections.abc import Awaitable, Iterable, Mapping, Sequence
from typing import Protocol, TypeVar

from core.errors import BrokerError, KafkaErrorClassifier, MissingTopicsError
from core.logging import LogContext, log_operation
from core.resilience import PollConfig, wait_until
from topic_mirror.types import ReconciliationPlan, TopicMetadata

logger = logging.getLogger(__name__)

T = TypeVar("T")

__all__ = ["TopicAdmin", "TopicReconciler", "plan_reconciliation"]


class TopicAdmin(Protocol):
    """Topic administration capabilities of one cluster."""

    cluster: str

    async def list_topics(self, names: Iterable[str]) -> dict[str, TopicMetadata]: ...

    async def delete_topics(self, names: Sequence[str]) -> None: ...

    async def create_topic(self, name: str, partition_count: int) -> None: ...


def plan_reconciliation(
    topics: Sequence[str],
    source_metadata: Mapping[str, TopicMetadata],
    sink_metadata: Mapping[str, TopicMetadata],
) -> ReconciliationPlan:
    """
    Decide which sink topics to delete and what to create.

    Every requested topic present on the sink is deleted; every requested
    topic is created with the source's partition count. Request order is
    preserved in both lists.
    """
    return ReconciliationPlan(
        topics_to_delete=tuple(topic for topic in topics if topic in sink_metadata),
        topics_to_create=tuple(
            (topic, source_metadata[topic].partition_count) for topic in topics
        ),
    )


class TopicReconciler:
    """
    Drives the sink to the source's layout for a set of topics.

    Phases run strictly in sequence: validate source, plan, delete and wait,
    create and wait. Each RPC is bounded by timeout_seconds; each wait is
    bounded by the same timeout.
    """

    def __init__(
        self,
        source: TopicAdmin,
        sink: TopicAdmin,
        timeout_seconds: float = 30.0,
        poll_interval_seconds: float = 1.0,
    ):
        self.source = source
        self.sink = sink
        self.timeout_seconds = timeout_seconds
        self.poll_config = PollConfig(timeout=timeout_seconds, interval=poll_interval_seconds)

    async def reconcile(self, topics: Sequence[str]) -> dict[str, TopicMetadata]:
        """
        Reconcile the sink for the requested topics.

        Returns:
            Source metadata for the requested topics, in request order

        Raises:
            MissingTopicsError: If any topic is absent on the source (sink untouched)
            BrokerError: If an admin RPC fails or times out
            ConvergenceTimeoutError: If the sink does not converge in time
        """
        topics = list(topics)

        with LogContext(stage="reconcile"):
            source_metadata = await self._validate_source(topics)

            with log_operation(logger, "list_sink_topics", topics=topics):
                sink_metadata = await self._rpc(
                    self.sink.list_topics(topics), "list_topics", topics
                )

            plan = plan_reconciliation(topics, source_metadata, sink_metadata)
            logger.info(
                "Reconciliation plan ready",
                extra={
                    "topics_to_delete": list(plan.topics_to_delete),
                    "topics_to_create": plan.create_counts,
                },
            )

            if plan.topics_to_delete:
                await self._delete(plan.topics_to_delete)

            await self._create(plan.topics_to_create)

        return source_metadata

    async def _validate_source(self, topics: list[str]) -> dict[str, TopicMetadata]:
        with log_operation(logger, "list_source_topics", topics=topics):
            listed = await self._rpc(self.source.list_topics(topics), "list_topics", topics)

        missing = [topic for topic in topics if topic not in listed]
        if missing:
            logger.error(
                "Requested topics missing on source cluster",
                extra={"missing_topics": missing, "cluster": self.source.cluster},
            )
            raise MissingTopicsError(missing)

        return {topic: listed[topic] for topic in topics}

    async def _delete(self, names: Sequence[str]) -> None:
        with log_operation(
            logger, "delete_sink_topics", level=logging.INFO, phase="delete", topics=list(names)
        ):
            await self._rpc(self.sink.delete_topics(list(names)), "delete_topics", names)

            async def deleted() -> bool:
                listed = await self._poll_sink(names)
                return listed is not None and not any(name in listed for name in names)

            await wait_until(
                deleted,
                self.poll_config,
                f"deletion of sink topics {', '.join(names)}",
                topics=names,
            )

    async def _create(self, topics_to_create: Sequence[tuple[str, int]]) -> None:
        counts = dict(topics_to_create)
        names = list(counts)

        with log_operation(
            logger, "create_sink_topics", level=logging.INFO, phase="create", topics=names
        ):
            for name, partition_count in topics_to_create:
                await self._rpc(
                    self.sink.create_topic(name, partition_count), "create_topic", [name]
                )
                logger.info(
                    "Created sink topic",
                    extra={"topic": name, "partition_count": partition_count},
                )

            async def created() -> bool:
                listed = await self._poll_sink(names)
                if listed is None:
                    return False
                return all(
                    name in listed and listed[name].partition_count == count
                    for name, count in counts.items()
                )

            await wait_until(
                created,
                self.poll_config,
                f"creation of sink topics {', '.join(names)}",
                topics=names,
            )

    async def _poll_sink(self, names: Sequence[str]) -> dict[str, TopicMetadata] | None:
        """List sink topics for a convergence check; None when the poll failed."""
        try:
            return await self._rpc(self.sink.list_topics(names), "list_topics", names)
        except BrokerError as e:
            logger.warning(
                "Sink metadata poll failed, treating as not converged",
                extra={
                    "topics": list(names),
                    "error_category": e.category.value,
                    "error_message": str(e),
                },
            )
            return None

    async def _rpc(self, call: Awaitable[T], operation: str, topics: Iterable[str]) -> T:
        """Await one admin RPC under the run timeout, wrapping failures in BrokerError."""
        try:
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise BrokerError(
                f"Kafka {operation} timed out after {self.timeout_seconds:g}s",
                operation=operation,
                cause=e,
                category=KafkaErrorClassifier.classify_error(e),
                context={"topics": list(topics)},
            ) from e
        except Exception as e:
            raise KafkaErrorClassifier.classify_admin_error(
                e, operation, {"topics": list(topics)}
            ) from e
