"""
Topic offset specifications.

A topic spec names a topic and, optionally, where mirroring starts:

    orders                  cluster default for every partition
    orders@5                offset 5 on every partition
    orders@earliest         start of log on every partition
    orders@0:10,1:latest    partition 0 at 10, partition 1 at end of log,
                            every other partition at the default

Parsing happens before any cluster is contacted; a malformed spec aborts
the run with FormatError naming the offending token.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from core.errors import ConfigurationError, DuplicateTopicError, FormatError

__all__ = [
    "OFFSET_END",
    "OFFSET_BEGINNING",
    "OFFSET_KEYWORDS",
    "TopicOffsetPolicy",
    "parse_offset_keyword",
    "parse_offset",
    "parse_topic_spec",
    "parse_topic_specs",
    "render_topic_spec",
    "validate_topic_name",
]

# Sentinels understood by the broker client (seek to end / beginning)
OFFSET_END = -1
OFFSET_BEGINNING = -2

OFFSET_KEYWORDS = {
    "earliest": OFFSET_BEGINNING,
    "beginning": OFFSET_BEGINNING,
    "start": OFFSET_BEGINNING,
    "from-start": OFFSET_BEGINNING,
    "from-beginning": OFFSET_BEGINNING,
    "latest": OFFSET_END,
    "end": OFFSET_END,
    "from-end": OFFSET_END,
    "from-latest": OFFSET_END,
}

MAX_PARTITION = 2**31 - 1
MAX_OFFSET = 2**63 - 1

MAX_TOPIC_NAME_LENGTH = 249
_TOPIC_NAME_RE = re.compile(r"^[a-zA-Z0-9._-]+$")
_INTEGER_RE = re.compile(r"^-?[0-9]+$")


@dataclass(frozen=True)
class TopicOffsetPolicy:
    """
    Starting-offset policy for one topic.

    At most one of global_offset / per_partition_offset is set. With neither
    set, every partition starts at the run's default offset.
    """

    global_offset: int | None = None
    per_partition_offset: Mapping[int, int] | None = None

    def __post_init__(self) -> None:
        if self.global_offset is not None and self.per_partition_offset is not None:
            raise ValueError("global_offset and per_partition_offset are mutually exclusive")
        if self.per_partition_offset is not None and not isinstance(
            self.per_partition_offset, MappingProxyType
        ):
            object.__setattr__(
                self, "per_partition_offset", MappingProxyType(dict(self.per_partition_offset))
            )

    @property
    def is_default(self) -> bool:
        return self.global_offset is None and not self.per_partition_offset

    def offset_for(self, partition: int) -> int | None:
        """Explicit offset for a partition, or None to use the default."""
        if self.per_partition_offset is not None and partition in self.per_partition_offset:
            return self.per_partition_offset[partition]
        return self.global_offset


def parse_offset_keyword(value: str) -> int | None:
    """Map an offset keyword (earliest, latest, ...) to its sentinel, or None."""
    return OFFSET_KEYWORDS.get(value.strip().lower())


def _parse_int(token: str, minimum: int, maximum: int, what: str, spec: str | None) -> int:
    text = token.strip()
    if not _INTEGER_RE.match(text):
        raise FormatError(token, f"{what} must be an integer", spec)
    value = int(text)
    if value < minimum or value > maximum:
        raise FormatError(token, f"{what} out of range [{minimum}, {maximum}]", spec)
    return value


def parse_offset(token: str, spec: str | None = None) -> int:
    """
    Parse an offset position: a keyword or a 64-bit integer.

    Negative values other than the -1/-2 sentinels are rejected because a
    consumer cannot seek to them.
    """
    sentinel = parse_offset_keyword(token)
    if sentinel is not None:
        return sentinel
    return _parse_int(token, OFFSET_BEGINNING, MAX_OFFSET, "offset", spec)


def _parse_partition(token: str, spec: str | None) -> int:
    return _parse_int(token, 0, MAX_PARTITION, "partition", spec)


def validate_topic_name(name: str, spec: str | None = None) -> str:
    """Check a topic name against the broker's legal-name rules."""
    if not name:
        raise FormatError(name, "topic name is empty", spec)
    if name in (".", ".."):
        raise FormatError(name, "topic name cannot be '.' or '..'", spec)
    if len(name) > MAX_TOPIC_NAME_LENGTH:
        raise FormatError(
            name, f"topic name longer than {MAX_TOPIC_NAME_LENGTH} characters", spec
        )
    if not _TOPIC_NAME_RE.match(name):
        raise FormatError(name, "topic name may only contain [a-zA-Z0-9._-]", spec)
    return name


def _parse_partition_map(suffix: str, spec: str) -> dict[int, int]:
    offsets: dict[int, int] = {}
    for pair in suffix.split(","):
        parts = pair.split(":")
        if len(parts) != 2:
            raise FormatError(pair, "expected partition:offset", spec)
        partition = _parse_partition(parts[0], spec)
        if partition in offsets:
            raise FormatError(pair, f"partition {partition} listed more than once", spec)
        offsets[partition] = parse_offset(parts[1], spec)
    return offsets


def parse_topic_spec(spec: str) -> tuple[str, TopicOffsetPolicy]:
    """
    Parse one topic spec into (topic, policy).

    Raises:
        FormatError: If the spec does not follow the grammar
    """
    spec = spec.strip()
    topic, sep, suffix = spec.partition("@")
    validate_topic_name(topic, spec)

    if not sep:
        return topic, TopicOffsetPolicy()
    if not suffix:
        raise FormatError(spec, "missing offset after '@'", spec)

    if ":" in suffix or "," in suffix:
        return topic, TopicOffsetPolicy(per_partition_offset=_parse_partition_map(suffix, spec))

    return topic, TopicOffsetPolicy(global_offset=parse_offset(suffix, spec))


def parse_topic_specs(specs: Iterable[str]) -> tuple[tuple[str, ...], dict[str, TopicOffsetPolicy]]:
    """
    Parse the requested topic specs.

    Returns:
        (topic names in request order, policy per topic)

    Raises:
        FormatError: If any spec is malformed
        DuplicateTopicError: If a topic is named twice
        ConfigurationError: If no topics were given
    """
    topics: list[str] = []
    policies: dict[str, TopicOffsetPolicy] = {}

    for spec in specs:
        topic, policy = parse_topic_spec(spec)
        if topic in policies:
            raise DuplicateTopicError(topic)
        topics.append(topic)
        policies[topic] = policy

    if not topics:
        raise ConfigurationError("No topics to mirror were specified")

    return tuple(topics), policies


def render_topic_spec(topic: str, policy: TopicOffsetPolicy) -> str:
    """Render a policy back to topic spec syntax."""
    if policy.per_partition_offset:
        pairs = ",".join(
            f"{partition}:{offset}"
            for partition, offset in sorted(policy.per_partition_offset.items())
        )
        return f"{topic}@{pairs}"
    if policy.global_offset is not None:
        return f"{topic}@{policy.global_offset}"
    return topic
