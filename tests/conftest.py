"""
pytest configuration for topic mirror tests.

Adds src directory to Python path for imports and isolates tests from the
environment variables the config loader reads.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

_MIRROR_ENV_VARS = [
    "MIRROR_TOPICS",
    "MIRROR_CLIENT_ID",
    "MIRROR_TIMEOUT_SECONDS",
    "LOG_TO_STDOUT",
    "LOG_DIR",
]
for _prefix in ("SOURCE", "SINK"):
    for _suffix in (
        "BOOTSTRAP_SERVERS",
        "SECURITY_PROTOCOL",
        "SASL_MECHANISM",
        "SASL_USERNAME",
        "SASL_PASSWORD",
        "SSL_CAFILE",
        "SSL_CADATA",
        "SSL_INSECURE",
    ):
        _MIRROR_ENV_VARS.append(f"{_prefix}_{_suffix}")


@pytest.fixture(autouse=True)
def clean_mirror_env(monkeypatch):
    """Remove mirror settings inherited from the shell or a .env file."""
    for name in _MIRROR_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_log_context():
    from core.logging.context import clear_log_context

    clear_log_context()
    yield
    clear_log_context()
