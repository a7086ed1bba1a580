"""
Core library: reusable, infrastructure-agnostic components.

Modules:
    errors      - Error classification and exception hierarchy
    logging     - Structured JSON logging with run identifiers
    resilience  - Poll-until-converged helper for eventually consistent metadata
    utils       - JSON serialization, client id generation
"""

from .types import ErrorCategory

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
]
