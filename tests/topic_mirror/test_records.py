"""Tests for mirror data types."""

from types import SimpleNamespace

from topic_mirror.types import (
    FetchBatch,
    MirrorRecord,
    ReconciliationPlan,
    TopicMetadata,
    from_consumer_record,
)


class TestTopicMetadata:

    def test_with_partitions(self):
        metadata = TopicMetadata.with_partitions("orders", 3)

        assert metadata.partition_count == 3
        assert [p.index for p in metadata.partitions] == [0, 1, 2]


class TestReconciliationPlan:

    def test_create_counts(self):
        plan = ReconciliationPlan(topics_to_create=(("b", 2), ("a", 1)))

        assert plan.create_counts == {"b": 2, "a": 1}
        assert list(plan.create_counts) == ["b", "a"]


class TestFetchBatch:

    def test_defaults_empty(self):
        batch = FetchBatch()

        assert batch.records == []
        assert batch.errors == []


class TestFromConsumerRecord:

    def test_copies_all_fields(self):
        record = SimpleNamespace(
            topic="orders",
            partition=1,
            offset=99,
            timestamp=1_700_000_000_000,
            key=b"k",
            value=b"v",
            headers=(("a", b"1"), ("b", None)),
        )

        result = from_consumer_record(record)

        assert result == MirrorRecord(
            topic="orders",
            partition=1,
            offset=99,
            timestamp=1_700_000_000_000,
            key=b"k",
            value=b"v",
            headers=[("a", b"1"), ("b", None)],
        )

    def test_missing_headers(self):
        record = SimpleNamespace(
            topic="orders", partition=0, offset=1, timestamp=0, key=None, value=None, headers=()
        )

        assert from_consumer_record(record).headers == []
