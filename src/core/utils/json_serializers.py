"""Shared JSON serialization utilities for structured log output."""

from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any


def _serialize_known_type(obj: Any) -> tuple[bool, Any]:
    """Try to serialize by known type. Returns (handled, result)."""
    if isinstance(obj, (datetime, date)):
        return True, obj.isoformat()
    if isinstance(obj, Enum):
        return True, obj.value
    if isinstance(obj, Path):
        return True, str(obj)
    if isinstance(obj, (bytes, bytearray)):
        return True, bytes(obj).decode("utf-8", errors="backslashreplace")
    if isinstance(obj, (set, frozenset, tuple)):
        return True, sorted(obj, key=str) if isinstance(obj, (set, frozenset)) else list(obj)
    if isinstance(obj, Mapping):
        return True, {str(k): v for k, v in obj.items()}
    return False, None


def json_serializer(obj: Any) -> Any:
    """
    JSON serializer for values passed as structured log fields.

    Keeps proper types instead of converting everything to strings:
    - datetime/date -> ISO 8601 string
    - Enum -> value
    - bytes -> UTF-8 text (invalid bytes escaped)
    - set/frozenset -> sorted list, tuple -> list
    - Mapping (e.g. MappingProxyType, assignments keyed by int) -> dict with str keys
    - Everything else -> str (fallback)
    """
    handled, result = _serialize_known_type(obj)
    if handled:
        return result
    if hasattr(obj, "__dict__"):
        return obj.__dict__
    return str(obj)


__all__ = ["json_serializer"]
