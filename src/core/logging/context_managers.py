"""Context managers for structured logging."""

import logging
import time
from contextlib import contextmanager
from typing import Any, Optional

from core.logging.context import get_log_context, set_log_context
from core.logging.utilities import log_exception, log_with_context


class LogContext:
    """
    Scope a stage, run or worker id over a block of log calls.

    Usage:
        with LogContext(stage="reconcile"):
            await reconciler.reconcile(topics)

    Fields left as None keep their current value; the previous context is
    restored on exit, including after an exception.
    """

    def __init__(
        self,
        run_id: Optional[str] = None,
        stage: Optional[str] = None,
        worker_id: Optional[str] = None,
    ):
        self.new_context = {"run_id": run_id, "stage": stage, "worker_id": worker_id}
        self.old_context: dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = get_log_context()
        set_log_context(**self.new_context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        set_log_context(**self.old_context)
        return False


class OperationContext:
    """
    Time one admin or mirror operation and log how it ended.

    Success is logged at ``level``, raised to INFO when the operation took
    longer than ``slow_threshold_ms``. Failures are logged without a
    traceback and re-raised.
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        level: int = logging.DEBUG,
        slow_threshold_ms: Optional[float] = 1000.0,
        **context: Any,
    ):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.slow_threshold_ms = slow_threshold_ms
        self.context = context
        self._start_time = 0.0

    def __enter__(self) -> "OperationContext":
        self._start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = round((time.perf_counter() - self._start_time) * 1000, 2)

        if exc_val is not None:
            log_exception(
                self.logger,
                exc_val,
                f"Failed: {self.operation}",
                include_traceback=False,
                duration_ms=duration_ms,
                operation=self.operation,
                **self.context,
            )
            return False

        level = self.level
        if self.slow_threshold_ms and duration_ms > self.slow_threshold_ms:
            level = max(level, logging.INFO)
        log_with_context(
            self.logger,
            level,
            f"Completed: {self.operation}",
            duration_ms=duration_ms,
            operation=self.operation,
            **self.context,
        )
        return False


@contextmanager
def log_operation(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    slow_threshold_ms: Optional[float] = 1000.0,
    **context: Any,
):
    """Time the enclosed block as ``operation``; see OperationContext."""
    with OperationContext(
        logger, operation, level=level, slow_threshold_ms=slow_threshold_ms, **context
    ) as ctx:
        yield ctx
