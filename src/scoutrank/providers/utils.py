"""
Shared helpers for reading provider payloads.

Payloads are decoded JSON with optional and inconsistently typed
fields; these helpers return None instead of raising on bad data.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


def get_path(payload: Any, *path: str) -> Any:
    """Nested lookup that returns None on any missing key or non-dict."""
    current = payload
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def as_int(value: Any) -> Optional[int]:
    number = as_float(value)
    return int(number) if number is not None else None


def parse_iso_date(value: Any) -> Optional[date]:
    """Date part of an ISO date or datetime string ("2003-05-05T00:00:00Z")."""
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.split("T")[0])
    except ValueError:
        logger.debug("Unparseable date: %r", value)
        return None


def parse_timestamp_date(value: Any) -> Optional[date]:
    """UTC date from a unix timestamp in seconds."""
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).date()
