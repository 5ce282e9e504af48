"""Utility helpers for OpenEvents."""

from __future__ import annotations

from datetime import UTC, datetime

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def utcnow() -> datetime:
    """Return a naive UTC datetime."""

    return datetime.now(UTC).replace(tzinfo=None)


def truncate_to_seconds(value: datetime) -> datetime:
    return value.replace(microsecond=0)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Drop tzinfo after converting aware datetimes to UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value


def format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.strftime(DATETIME_FORMAT)


def parse_datetime(raw: str) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM:SS`` or any ISO8601 string into naive UTC."""
    try:
        return to_naive_utc(datetime.strptime(raw, DATETIME_FORMAT))
    except ValueError:
        return to_naive_utc(datetime.fromisoformat(raw))


def paginate(items: list, *, offset: int, size: int) -> list:
    return items[offset : offset + size]
