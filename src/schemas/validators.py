"""
Shared validation and serialization helpers for Pydantic schemas.

Stored documents carry timestamps as epoch milliseconds, but older documents and
index hits may hold datetimes, ISO strings, or nothing at all. `Timestamp`
accepts all of those and always serializes back to epoch milliseconds in JSON mode.
"""
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def now_millis() -> int:
    """Get the current time as epoch milliseconds."""
    return to_millis(utc_now())


def to_millis(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are treated as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp() * 1000)


def coerce_timestamp(value: Any) -> datetime:
    """
    Convert any stored timestamp representation to an aware datetime.

    Missing values default to now, matching how the app treats documents written
    before a field existed.
    """
    if value is None or value == "":
        return utc_now()
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        raise ValueError("Boolean is not a valid timestamp")
    if isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError) as e:
            raise ValueError(f"Timestamp out of range: {value!r}") from e
    if isinstance(value, str):
        try:
            return coerce_timestamp(datetime.fromisoformat(value))
        except ValueError:
            return coerce_timestamp(float(value))
    raise ValueError(f"Unsupported timestamp value: {value!r}")


Timestamp = Annotated[
    datetime,
    BeforeValidator(coerce_timestamp),
    PlainSerializer(to_millis, return_type=int, when_used="json"),
]
