"""
Poll-until-true helper for eventually consistent state.

Cluster metadata reflects admin changes (topic create/delete) only after
propagation, so callers observe convergence instead of trusting the RPC
acknowledgment. wait_until() re-evaluates a predicate at a fixed interval
until it holds or the timeout elapses.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from core.errors.exceptions import ConvergenceTimeoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollConfig:
    """Timing for wait_until()."""

    timeout: float = 30.0
    interval: float = 1.0

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")
        if self.interval <= 0:
            raise ValueError(f"interval must be > 0, got {self.interval}")


async def wait_until(
    predicate: Callable[[], Awaitable[bool]],
    config: PollConfig,
    description: str,
    topics: Iterable[str] = (),
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """
    Wait until predicate() returns True, polling every config.interval seconds.

    The predicate is always evaluated at least once. Exceptions raised by the
    predicate propagate; callers that want to tolerate failed polls must
    catch inside the predicate.

    Args:
        predicate: Async callable returning True once the condition holds
        config: Timeout and polling interval
        description: What is being waited for (used in logs and the error)
        topics: Topics involved, attached to the error for reporting
        clock: Monotonic clock (injectable for tests)

    Returns:
        Number of predicate evaluations performed

    Raises:
        ConvergenceTimeoutError: If the timeout elapses first
    """
    start = clock()
    attempt = 0

    while True:
        attempt += 1
        if await predicate():
            logger.debug(
                "Condition reached: %s",
                description,
                extra={
                    "attempt": attempt,
                    "elapsed_seconds": round(clock() - start, 3),
                },
            )
            return attempt

        elapsed = clock() - start
        if elapsed >= config.timeout:
            raise ConvergenceTimeoutError(description, config.timeout, topics)

        logger.debug(
            "Condition not yet reached: %s",
            description,
            extra={
                "attempt": attempt,
                "elapsed_seconds": round(elapsed, 3),
                "delay_seconds": config.interval,
            },
        )
        await asyncio.sleep(min(config.interval, max(config.timeout - elapsed, 0)))


__all__ = ["PollConfig", "wait_until"]
