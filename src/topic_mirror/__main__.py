"""Topic mirror entry point. Use --help for usage."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from config.config import load_config
from core.errors import ConfigurationError
from core.logging import (
    generate_run_id,
    get_log_output_mode,
    log_exception,
    log_startup_banner,
    setup_logging,
)
from topic_mirror import __version__
from topic_mirror.runner import EXIT_CONFIG_ERROR, EXIT_FAILURE, run
from topic_mirror.signals import setup_shutdown_signal_handlers

# Project root directory (where .env file is located)
# __main__.py is at src/topic_mirror/__main__.py, so root is 3 levels up
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="topic-mirror",
        description="Mirror topics from a source Kafka cluster to a sink cluster",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Topic specs:
    orders                  start at the default offset (latest)
    orders@5                start every partition at offset 5
    orders@earliest         start every partition at the beginning
    orders@0:10,1:latest    per-partition starting offsets

Examples:
    # Mirror two topics, settings from environment
    SOURCE_BOOTSTRAP_SERVERS=src:9092 SINK_BOOTSTRAP_SERVERS=dst:9092 \\
        python -m topic_mirror orders@earliest payments

    # Use a config file and wait for sink acknowledgment per batch
    python -m topic_mirror --config config/config.yaml --wait-for-delivery

WARNING: existing sink topics with the requested names are deleted and recreated.
        """,
    )

    parser.add_argument(
        "topics",
        nargs="*",
        metavar="TOPIC_SPEC",
        help="Topics to mirror (default: MIRROR_TOPICS env var or mirror.topics in config)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.yaml file (default: src/config/config.yaml if present)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Timeout in seconds for each admin RPC and convergence wait (default: 30)",
    )
    parser.add_argument(
        "--default-offset",
        default=None,
        help="Offset for partitions without an explicit one: earliest, latest or an integer "
        "(default: latest)",
    )
    parser.add_argument(
        "--replication-factor",
        type=int,
        default=None,
        help="Replication factor for recreated sink topics (default: -1, broker default)",
    )
    parser.add_argument(
        "--wait-for-delivery",
        action="store_true",
        help="Flush the sink producer after every batch before fetching the next",
    )
    parser.add_argument(
        "--client-id",
        default=None,
        help="Kafka client id (default: MIRROR_CLIENT_ID or a generated name)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: from LOG_DIR env var or ./logs)",
    )
    parser.add_argument(
        "--log-to-stdout",
        action="store_true",
        help="Send all log output to stdout only, skipping file handlers. "
        "Can also be set via LOG_TO_STDOUT environment variable.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict:
    """Config overrides from command line flags that were given."""
    overrides: dict = {}
    if args.timeout is not None:
        overrides["timeout_seconds"] = args.timeout
    if args.default_offset is not None:
        overrides["default_offset"] = args.default_offset
    if args.replication_factor is not None:
        overrides["replication_factor"] = args.replication_factor
    if args.wait_for_delivery:
        overrides["wait_for_delivery"] = True
    if args.client_id:
        overrides["client_id"] = args.client_id
    return overrides


def _setup_logging(args: argparse.Namespace) -> None:
    log_to_stdout = args.log_to_stdout or os.getenv("LOG_TO_STDOUT", "false").lower() in (
        "true",
        "1",
        "yes",
    )
    log_dir = Path(args.log_dir or os.getenv("LOG_DIR") or "logs")
    setup_logging(
        name="topic_mirror",
        log_dir=log_dir,
        console_level=getattr(logging, args.log_level),
        run_id=generate_run_id(),
        log_to_stdout=log_to_stdout,
    )


def main(argv: list[str] | None = None) -> int:
    global logger

    load_dotenv(PROJECT_ROOT / ".env")
    args = parse_args(argv)

    _setup_logging(args)
    logger = logging.getLogger(__name__)

    try:
        config = load_config(
            config_path=args.config,
            overrides=build_overrides(args),
            topic_specs=args.topics,
        )
    except ConfigurationError as e:
        log_exception(logger, e, "Invalid configuration", include_traceback=False)
        return EXIT_CONFIG_ERROR

    log_startup_banner(
        logger,
        "Topic Mirror",
        version=__version__,
        client_id=config.client_id,
        source=config.source.bootstrap_servers,
        sink=config.sink.bootstrap_servers,
        topics=", ".join(config.topics),
        log_output_mode=get_log_output_mode(),
    )

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    shutdown_event = asyncio.Event()
    setup_shutdown_signal_handlers(shutdown_event, loop)

    try:
        return loop.run_until_complete(run(config, shutdown_event))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Interrupted, shutting down...")
        return EXIT_FAILURE
    finally:
        loop.close()
        logger.info("Topic mirror exited")


if __name__ == "__main__":
    sys.exit(main())
