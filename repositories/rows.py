"""
Shared helpers for converting Supabase rows and responses.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from postgrest.exceptions import APIError

from domain.time import require_utc_timestamp

# PostgreSQL SQLSTATE for unique_violation.
UNIQUE_VIOLATION = "23505"


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def response_rows(response: Any, *, action: str) -> List[Mapping[str, Any]]:
    """
    Return the rows of a query response, raising if it carries an error.

    Raises:
        RuntimeError: If the response reports an error.
    """

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return getattr(response, "data", None) or []


def is_unique_violation(exc: APIError) -> bool:
    return str(getattr(exc, "code", "")) == UNIQUE_VIOLATION


__all__ = [
    "UNIQUE_VIOLATION",
    "is_unique_violation",
    "parse_decimal",
    "parse_utc_datetime",
    "response_rows",
    "to_iso_utc",
]
