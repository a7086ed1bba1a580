"""
Structured logging module.

Provides JSON logging with run identifiers and context propagation.
"""

from core.logging.context import (
    clear_log_context,
    get_log_context,
    set_log_context,
)
from core.logging.context_managers import (
    LogContext,
    OperationContext,
    log_operation,
)
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.periodic_logger import PeriodicStatsLogger
from core.logging.setup import (
    generate_run_id,
    get_log_file_path,
    get_log_output_mode,
    setup_logging,
)
from core.logging.utilities import (
    format_progress_output,
    log_exception,
    log_startup_banner,
    log_with_context,
)

__all__ = [
    # Setup
    "setup_logging",
    "generate_run_id",
    "get_log_file_path",
    "get_log_output_mode",
    # Formatters
    "JSONFormatter",
    "ConsoleFormatter",
    # Context
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    # Context Managers
    "LogContext",
    "OperationContext",
    "log_operation",
    # Periodic stats
    "PeriodicStatsLogger",
    # Utilities
    "log_with_context",
    "log_exception",
    "log_startup_banner",
    "format_progress_output",
]
