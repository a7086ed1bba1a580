"""Cross-platform signal handler setup for graceful shutdown."""

import asyncio
import logging
import signal

logger = logging.getLogger(__name__)


def setup_shutdown_signal_handlers(
    shutdown_event: asyncio.Event,
    loop: asyncio.AbstractEventLoop | None = None,
) -> None:
    """Register SIGTERM/SIGINT handlers that set shutdown_event.

    First signal: sets the event; the mirror loop stops after its current pull
    and flushes the producer. Second signal: cancels all tasks.

    On Unix, uses the event loop's add_signal_handler(). On Windows,
    falls back to signal.signal() since add_signal_handler() is not supported.
    """
    loop = loop or asyncio.get_event_loop()

    def handle_signal(sig: signal.Signals) -> None:
        if not shutdown_event.is_set():
            logger.info("Received signal, initiating graceful shutdown", extra={"signal": sig.name})
            shutdown_event.set()
        else:
            logger.warning("Received second signal, forcing immediate shutdown...")
            for task in asyncio.all_tasks(loop):
                task.cancel()

    try:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, handle_signal, sig)
    except NotImplementedError:
        def _handler(signum, frame):
            loop.call_soon_threadsafe(handle_signal, signal.Signals(signum))

        signal.signal(signal.SIGTERM, _handler)
        signal.signal(signal.SIGINT, _handler)
