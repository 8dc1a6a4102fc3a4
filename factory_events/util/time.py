from __future__ import annotations

from datetime import datetime, timezone


class TimePolicyError(ValueError):
    pass


def require_utc_aware(dt: datetime, field_name: str) -> datetime:
    """
    Strict policy:
    - dt MUST be timezone-aware
    - converted to UTC
    """
    if dt.tzinfo is None or dt.utcoffset() is None:
        raise TimePolicyError(
            f"{field_name} must be timezone-aware UTC (ISO 8601, e.g. 2026-01-15T00:00:00.000Z)"
        )
    return dt.astimezone(timezone.utc)


def truncate_to_millis(dt: datetime) -> datetime:
    return dt.replace(microsecond=(dt.microsecond // 1000) * 1000)


def from_db_utc_naive(dt: datetime) -> datetime:
    """
    Interprets naive DB timestamps as UTC and returns timezone-aware UTC.
    SQLite drops tzinfo on the way in; PostgreSQL timestamptz keeps it.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_instant(dt: datetime) -> str:
    """Wire format: UTC, millisecond precision, trailing Z."""
    dt_utc = from_db_utc_naive(dt)
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt_utc.microsecond // 1000:03d}Z"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_ms() -> datetime:
    """Server "now" at the same precision the API exchanges."""
    return truncate_to_millis(utcnow())
