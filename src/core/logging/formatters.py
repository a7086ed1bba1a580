"""Log formatters for JSON and console output."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from core.logging.context import get_log_context
from core.utils.json_serializers import json_serializer

# Structured fields copied from LogRecord extras. A type coerces the value
# so counters and offsets stay numeric in the JSON output; None passes the
# value through unchanged.
FIELD_TYPES: dict[str, type | None] = {
    # Timing
    "duration_ms": float,
    "elapsed_seconds": float,
    "timeout_seconds": float,
    "delay_seconds": float,
    # Errors
    "error_category": None,
    "error_message": None,
    "error_type": None,
    "error": None,
    # Run state
    "operation": None,
    "phase": None,
    "state": None,
    "attempt": int,
    "signal": None,
    # Clusters
    "cluster": None,
    "client_id": None,
    "bootstrap_servers": None,
    "security_protocol": None,
    "sasl_mechanism": None,
    "replication_factor": int,
    # Topics and partitions
    "topic": None,
    "topics": None,
    "partition": int,
    "partitions": None,
    "offset": int,
    "partition_count": int,
    "source_partition_count": int,
    "sink_partition_count": int,
    "topics_to_delete": None,
    "topics_to_create": None,
    "missing_topics": None,
    "assignment": None,
    # Forwarding progress
    "batch_size": int,
    "batches": int,
    "records_forwarded": int,
    "produce_errors": int,
    "fetch_errors": int,
    "rate_msg_per_sec": float,
}

# Source location is attached at these levels only
_LOCATED_LEVELS = (logging.DEBUG, logging.ERROR, logging.CRITICAL)


def _coerce(field: str, value: Any) -> Any:
    """Convert a numeric field to its type; unparseable values become None."""
    expected_type = FIELD_TYPES.get(field)
    if expected_type is None:
        return value
    try:
        return expected_type(value)
    except (ValueError, TypeError):
        return None


def _timestamp(record: logging.LogRecord) -> str:
    created = datetime.fromtimestamp(record.created, UTC)
    return created.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    The run context (stage, run_id, worker_id) is merged into every entry,
    followed by the known structured extras and any exception.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "ts": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_entry.update((key, value) for key, value in get_log_context().items() if value)

        if record.levelno in _LOCATED_LEVELS:
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in FIELD_TYPES:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = _coerce(field, value)

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stacktrace": self.formatException(record.exc_info),
            }

        return json.dumps(log_entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console lines with color-coded levels.

    Records about one cluster or partition are tagged, e.g.
    ``[sink] [orders:2] Created topic``. Colors are disabled when stdout is
    not a TTY.
    """

    COLORS = {
        logging.DEBUG: "\033[36m",  # Cyan
        logging.INFO: "\033[32m",  # Green
        logging.WARNING: "\033[33m",  # Yellow
        logging.ERROR: "\033[31m",  # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stdout.isatty()

    def _level(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno) if self._use_colors else None
        if not color:
            return record.levelname
        return f"{color}{record.levelname}{self.RESET}"

    @staticmethod
    def _tags(record: logging.LogRecord) -> list[str]:
        tags = []
        cluster = getattr(record, "cluster", None)
        if cluster:
            tags.append(f"[{cluster}]")

        topic = getattr(record, "topic", None)
        partition = getattr(record, "partition", None)
        if topic and partition is not None:
            tags.append(f"[{topic}:{partition}]")
        elif topic:
            tags.append(f"[{topic}]")
        return tags

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"),
            self._level(record),
        ]
        stage = get_log_context().get("stage")
        if stage:
            parts.append(f"[{stage}]")

        message = " ".join([*self._tags(record), record.getMessage()])
        line = f"{' - '.join(parts)} - {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line
