"""Periodic statistics logging utility."""

import asyncio
import logging
from collections.abc import Callable

from core.logging.utilities import format_progress_output

logger = logging.getLogger(__name__)


class PeriodicStatsLogger:
    """
    Periodic progress logging with delta tracking.

    The owner provides a callback returning cumulative counters; each cycle
    logs totals plus the forwarded delta since the previous cycle.
    """

    def __init__(
        self,
        interval_seconds: float,
        get_stats: Callable[[], dict[str, int]],
        stage: str,
    ):
        """
        Args:
            interval_seconds: Logging interval in seconds
            get_stats: Callback returning cumulative counters (records_forwarded,
                produce_errors, fetch_errors, batches)
            stage: Stage name for logging context
        """
        self.interval_seconds = interval_seconds
        self.get_stats = get_stats
        self.stage = stage
        self._task: asyncio.Task | None = None
        self._cycle_count = 0
        self._previous_forwarded = 0

    def start(self) -> None:
        if self._task is not None:
            logger.warning("Periodic logger already running")
            return

        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def log_cycle(self) -> None:
        """Log one progress line and advance the cycle counter."""
        stats = self.get_stats()
        forwarded = stats.get("records_forwarded", 0)
        delta = forwarded - self._previous_forwarded
        self._previous_forwarded = forwarded

        msg = format_progress_output(
            cycle_count=self._cycle_count,
            forwarded=forwarded,
            produce_errors=stats.get("produce_errors", 0),
            fetch_errors=stats.get("fetch_errors", 0),
            since_last=delta if self._cycle_count else None,
            interval_seconds=self.interval_seconds,
        )
        rate = delta / self.interval_seconds if self.interval_seconds > 0 else 0

        logger.info(
            msg,
            extra={
                "stage": self.stage,
                "rate_msg_per_sec": round(rate, 1),
                **stats,
            },
        )
        self._cycle_count += 1

    async def _run(self) -> None:
        self.log_cycle()
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                self.log_cycle()
        except asyncio.CancelledError:
            logger.debug("Periodic stats logger task cancelled")
            raise
