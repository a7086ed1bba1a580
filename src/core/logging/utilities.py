"""Logging utility functions."""

import logging
from typing import Any

# Reserved LogRecord attribute names that cannot be used in extra dict
_RESERVED_LOG_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "asctime",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log with structured context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Additional context fields (topic, partition, duration_ms, etc.)
                  Note: exc_info=True is supported and handled specially.

    Example:
        log_with_context(
            logger, logging.INFO, "Sink topic created",
            topic="orders",
            partition_count=5,
        )
    """
    exc_info = kwargs.pop("exc_info", None)

    # Filter out reserved keys to prevent LogRecord conflicts
    extra = {k: v for k, v in kwargs.items() if k not in _RESERVED_LOG_KEYS}

    logger.log(level, msg, exc_info=exc_info, extra=extra)


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log exception with context and optional traceback.

    Automatically extracts error_category from MirrorError subclasses.

    Args:
        logger: Logger instance
        exc: Exception to log
        msg: Context message
        level: Log level (default: ERROR)
        include_traceback: Include full traceback (default: True)
        **kwargs: Additional context fields

    Example:
        try:
            await reconciler.reconcile(topics)
        except BrokerError as e:
            log_exception(logger, e, "Reconciliation failed", topics=topics)
    """
    error_category = kwargs.get("error_category")
    if error_category is None and hasattr(exc, "category"):
        cat = exc.category
        kwargs["error_category"] = cat.value if hasattr(cat, "value") else str(cat)

    error_msg = str(exc)
    if len(error_msg) > 500:
        error_msg = error_msg[:500] + "..."
    kwargs["error_message"] = error_msg
    kwargs.setdefault("error_type", type(exc).__name__)

    extra = {k: v for k, v in kwargs.items() if k not in _RESERVED_LOG_KEYS}

    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=extra)
    else:
        logger.log(level, msg, extra=extra)


def format_progress_output(
    cycle_count: int,
    forwarded: int,
    produce_errors: int,
    fetch_errors: int,
    since_last: int | None = None,
    interval_seconds: float = 30,
) -> str:
    """
    Format a mirror progress line.

    Example:
        >>> format_progress_output(3, 1200, 0, 0, since_last=300, interval_seconds=30)
        'Cycle 3: +300 this cycle | total: 1200 forwarded | 10.0 msg/s'
    """
    totals = [f"{forwarded} forwarded"]
    if produce_errors:
        totals.append(f"{produce_errors} produce errors")
    if fetch_errors:
        totals.append(f"{fetch_errors} fetch errors")

    if since_last is None:
        return f"Cycle {cycle_count}: total: {', '.join(totals)}"

    rate = since_last / interval_seconds if interval_seconds > 0 else 0
    return f"Cycle {cycle_count}: +{since_last} this cycle | total: {', '.join(totals)} | {rate:.1f} msg/s"


_BANNER_FIELDS: list[tuple[str, str]] = [
    ("client_id", "Client ID:    {}"),
    ("source", "Source:       {}"),
    ("sink", "Sink:         {}"),
    ("topics", "Topics:       {}"),
    ("log_output_mode", "Log Output:   {}"),
]


def log_startup_banner(
    logger: logging.Logger,
    name: str,
    **kwargs: Any,
) -> None:
    """
    Log startup banner with run configuration.

    Args:
        logger: Logger instance
        name: Process name (e.g., "Topic Mirror")
        **kwargs: Optional fields: client_id, source, sink, topics, version,
            log_output_mode
    """
    separator = "=" * 50

    lines = ["", separator, name]

    version = kwargs.get("version")
    if version:
        lines.append(f"Version: {version}")

    lines.append(separator)

    for field_name, fmt in _BANNER_FIELDS:
        value = kwargs.get(field_name)
        if value:
            lines.append(fmt.format(value))

    lines.append(separator)
    lines.append("")

    logger.info("\n".join(lines))
