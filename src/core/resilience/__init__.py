"""
Resilience patterns module.

Components:
    - PollConfig: Timeout/interval for convergence polling
    - wait_until: Poll an async predicate until it holds or the timeout elapses
"""

from .polling import PollConfig, wait_until

__all__ = [
    "PollConfig",
    "wait_until",
]
