"""
Kafka topic mirror.

Mirrors a fixed set of topics from a source cluster to a sink cluster:
recreates sink topics with the source's partition counts, seeds a consumer at
the requested per-partition offsets, and forwards records 1:1 by partition.

Modules:
    offsets     - Topic spec grammar (topic, topic@offset, topic@p:o,...)
    assigner    - Starting offset resolution per partition
    reconciler  - Sink topic delete/create with convergence polling
    mirror      - Fetch/forward loop
    admin, consumer, producer, kafka_config - aiokafka clients
    runner      - Run orchestration and exit codes
"""

__version__ = "0.1.0"
