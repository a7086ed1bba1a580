"""Resolve concrete starting offsets per partition."""

import logging
from collections.abc import Mapping

from topic_mirror.offsets import OFFSET_END, TopicOffsetPolicy
from topic_mirror.types import TopicMetadata

logger = logging.getLogger(__name__)

__all__ = ["resolve_start_offsets"]


def resolve_start_offsets(
    metadata: Mapping[str, TopicMetadata],
    policies: Mapping[str, TopicOffsetPolicy],
    default_offset: int = OFFSET_END,
) -> dict[str, dict[int, int]]:
    """
    Compute the starting offset of every partition of every topic.

    Priority per partition: the per-partition entry, then the topic's global
    offset, then default_offset. Per-partition entries naming a partition the
    topic does not have are ignored.

    Args:
        metadata: Source topic metadata (authoritative partition counts)
        policies: Offset policy per topic; topics without one use the default
        default_offset: Fallback offset or sentinel

    Returns:
        topic -> partition -> offset, covering 0..count-1 for every topic
    """
    assignment: dict[str, dict[int, int]] = {}

    for topic, topic_metadata in metadata.items():
        policy = policies.get(topic) or TopicOffsetPolicy()
        offsets: dict[int, int] = {}
        for partition in range(topic_metadata.partition_count):
            offset = policy.offset_for(partition)
            offsets[partition] = default_offset if offset is None else offset
        assignment[topic] = offsets

        if policy.per_partition_offset:
            inert = sorted(p for p in policy.per_partition_offset if p not in offsets)
            if inert:
                logger.warning(
                    "Ignoring offsets for partitions the topic does not have",
                    extra={
                        "topic": topic,
                        "partition_count": topic_metadata.partition_count,
                        "partitions": inert,
                    },
                )

    return assignment
