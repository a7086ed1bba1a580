"""Topic administration for one cluster, backed by aiokafka's admin client."""

import logging
from collections.abc import Iterable, Sequence

from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.admin.config_resource import ConfigResource, ConfigResourceType
from aiokafka.errors import UnknownTopicOrPartitionError, for_code

from config.config import BrokerConfig
from core.errors import KafkaErrorClassifier
from topic_mirror.kafka_config import build_connection_config
from topic_mirror.types import PartitionMetadata, TopicMetadata

logger = logging.getLogger(__name__)

_NO_ERROR = 0

BROKER_DEFAULT_REPLICATION_FACTOR = -1
DEFAULT_REPLICATION_FACTOR_CONFIG = "default.replication.factor"
# Broker-side default when the setting is not reported
KAFKA_DEFAULT_REPLICATION_FACTOR = 1


def _topic_errors(response, attribute: str) -> list[tuple[str, Exception]]:
    """Per-topic errors from a CreateTopics/DeleteTopics response."""
    errors = []
    for entry in getattr(response, attribute, None) or []:
        topic, error_code = entry[0], entry[1]
        if error_code == _NO_ERROR:
            continue
        message = entry[2] if len(entry) > 2 and entry[2] else topic
        errors.append((topic, for_code(error_code)(message)))
    return errors


def _partition_index(partition: dict) -> int:
    return partition["partition"] if "partition" in partition else partition["partition_index"]


class KafkaTopicAdmin:
    """
    List, delete and create topics on one cluster.

    Every RPC failure is raised as BrokerError carrying the classified
    category of the underlying aiokafka error. Deadlines are the caller's
    concern (see TopicReconciler).
    """

    def __init__(
        self,
        config: BrokerConfig,
        cluster: str,
        client_id: str,
        replication_factor: int = BROKER_DEFAULT_REPLICATION_FACTOR,
    ):
        self.config = config
        self.cluster = cluster
        self.client_id = f"{client_id}-{cluster}-admin"
        self.replication_factor = replication_factor
        self._admin: AIOKafkaAdminClient | None = None
        self._resolved_replication_factor: int | None = None

    async def start(self) -> None:
        if self._admin is not None:
            logger.warning("Admin client already started", extra={"cluster": self.cluster})
            return

        logger.info(
            "Starting admin client",
            extra={
                "cluster": self.cluster,
                "bootstrap_servers": self.config.bootstrap_servers,
                "security_protocol": self.config.security_protocol,
            },
        )
        admin = AIOKafkaAdminClient(**build_connection_config(self.config, self.client_id))
        try:
            await admin.start()
        except Exception as e:
            await admin.close()
            raise KafkaErrorClassifier.classify_admin_error(
                e, "connect", {"cluster": self.cluster}
            ) from e
        self._admin = admin

    async def stop(self) -> None:
        if self._admin is None:
            return

        try:
            await self._admin.close()
            logger.debug("Admin client stopped", extra={"cluster": self.cluster})
        finally:
            self._admin = None

    def _client(self) -> AIOKafkaAdminClient:
        if self._admin is None:
            raise RuntimeError(f"Admin client for {self.cluster} cluster not started")
        return self._admin

    async def list_topics(self, names: Iterable[str]) -> dict[str, TopicMetadata]:
        """
        Metadata for the named topics that exist; missing names are absent.

        Topic names are listed first and only existing topics are described,
        so the metadata request never triggers broker-side auto-creation.
        """
        names = list(names)
        admin = self._client()
        try:
            existing = set(await admin.list_topics())
            present = [name for name in names if name in existing]
            if not present:
                return {}
            described = await admin.describe_topics(present)
        except Exception as e:
            raise KafkaErrorClassifier.classify_admin_error(
                e, "list_topics", {"cluster": self.cluster, "topics": names}
            ) from e

        result: dict[str, TopicMetadata] = {}
        for topic in described:
            name = topic["topic"]
            error_code = topic.get("error_code", _NO_ERROR)
            if error_code != _NO_ERROR:
                error = for_code(error_code)(name)
                if isinstance(error, UnknownTopicOrPartitionError):
                    # Deleted between list and describe
                    continue
                raise KafkaErrorClassifier.classify_admin_error(
                    error, "list_topics", {"cluster": self.cluster, "topic": name}
                )
            partitions = sorted(
                (
                    PartitionMetadata(index=_partition_index(p), leader=p.get("leader"))
                    for p in topic.get("partitions", [])
                ),
                key=lambda p: p.index,
            )
            result[name] = TopicMetadata(name, tuple(partitions))

        logger.debug(
            "Listed topics",
            extra={
                "cluster": self.cluster,
                "topics": {name: meta.partition_count for name, meta in result.items()},
            },
        )
        return {name: result[name] for name in names if name in result}

    async def delete_topics(self, names: Sequence[str]) -> None:
        """Delete topics; topics already gone are not an error."""
        admin = self._client()
        try:
            response = await admin.delete_topics(
                list(names), timeout_ms=self.config.request_timeout_ms
            )
        except Exception as e:
            raise KafkaErrorClassifier.classify_admin_error(
                e, "delete_topics", {"cluster": self.cluster, "topics": list(names)}
            ) from e

        for topic, error in _topic_errors(response, "topic_error_codes"):
            if isinstance(error, UnknownTopicOrPartitionError):
                logger.debug("Topic already deleted", extra={"cluster": self.cluster, "topic": topic})
                continue
            raise KafkaErrorClassifier.classify_admin_error(
                error, "delete_topics", {"cluster": self.cluster, "topic": topic}
            )

        logger.info("Deleted topics", extra={"cluster": self.cluster, "topics": list(names)})

    async def create_topic(self, name: str, partition_count: int) -> None:
        """Create a topic with the given partition count."""
        admin = self._client()
        new_topic = NewTopic(
            name=name,
            num_partitions=partition_count,
            replication_factor=await self.resolve_replication_factor(),
        )
        try:
            response = await admin.create_topics(
                [new_topic], timeout_ms=self.config.request_timeout_ms
            )
        except Exception as e:
            raise KafkaErrorClassifier.classify_admin_error(
                e, "create_topic", {"cluster": self.cluster, "topic": name}
            ) from e

        for topic, error in _topic_errors(response, "topic_errors"):
            raise KafkaErrorClassifier.classify_admin_error(
                error, "create_topic", {"cluster": self.cluster, "topic": topic}
            )

    async def resolve_replication_factor(self) -> int:
        """
        Replication factor for new topics.

        The broker default (-1) cannot be sent in a CreateTopics request
        without replica assignments, so it is resolved once from a broker's
        default.replication.factor setting.
        """
        if self.replication_factor != BROKER_DEFAULT_REPLICATION_FACTOR:
            return self.replication_factor
        if self._resolved_replication_factor is None:
            self._resolved_replication_factor = await self._describe_default_replication_factor()
            logger.info(
                "Resolved broker default replication factor",
                extra={
                    "cluster": self.cluster,
                    "replication_factor": self._resolved_replication_factor,
                },
            )
        return self._resolved_replication_factor

    async def _describe_default_replication_factor(self) -> int:
        admin = self._client()
        try:
            cluster = await admin.describe_cluster()
            brokers = cluster.get("brokers") or []
            if not brokers:
                return KAFKA_DEFAULT_REPLICATION_FACTOR
            responses = await admin.describe_configs(
                [
                    ConfigResource(
                        ConfigResourceType.BROKER,
                        str(brokers[0]["node_id"]),
                        {DEFAULT_REPLICATION_FACTOR_CONFIG: None},
                    )
                ]
            )
        except Exception as e:
            raise KafkaErrorClassifier.classify_admin_error(
                e, "describe_configs", {"cluster": self.cluster}
            ) from e

        for response in responses:
            for error_code, error_message, _, resource_name, entries, *_ in response.resources:
                if error_code != _NO_ERROR:
                    raise KafkaErrorClassifier.classify_admin_error(
                        for_code(error_code)(error_message or resource_name),
                        "describe_configs",
                        {"cluster": self.cluster},
                    )
                for entry in entries:
                    if entry[0] == DEFAULT_REPLICATION_FACTOR_CONFIG and entry[1]:
                        return int(entry[1])

        return KAFKA_DEFAULT_REPLICATION_FACTOR


__all__ = ["KafkaTopicAdmin"]
