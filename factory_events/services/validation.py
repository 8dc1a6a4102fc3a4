from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from factory_events.schemas.machine_event import MachineEventIn

INVALID_DURATION = "INVALID_DURATION"
INVALID_EVENT_TIME = "INVALID_EVENT_TIME"

MAX_DURATION_MS = 6 * 60 * 60 * 1000
MAX_FUTURE_MINUTES = 15


def validate_event(
    event: MachineEventIn,
    now: datetime,
    *,
    max_duration_ms: int = MAX_DURATION_MS,
    max_future_minutes: int = MAX_FUTURE_MINUTES,
) -> Optional[str]:
    """
    Business-rule gate for one candidate event.

    Rules (checked in order, first failure wins):
      - durationMs present and >= 0
      - durationMs <= max_duration_ms (6 hours)
      - eventTime present
      - eventTime not more than max_future_minutes ahead of `now`

    Returns the rejection reason ("<CODE>: <detail>"), or None if valid.
    """
    if event.duration_ms is None or event.duration_ms < 0:
        return f"{INVALID_DURATION}: durationMs must be >= 0"
    if event.duration_ms > max_duration_ms:
        return f"{INVALID_DURATION}: durationMs exceeds {_hours_label(max_duration_ms)}"

    if event.event_time is None:
        return f"{INVALID_EVENT_TIME}: eventTime is required"
    if event.event_time > now + timedelta(minutes=max_future_minutes):
        return f"{INVALID_EVENT_TIME}: eventTime is more than {max_future_minutes} minutes in the future"

    return None


def _hours_label(ms: int) -> str:
    hours = ms / 3_600_000
    if hours == 1:
        return "1 hour"
    return f"{hours:g} hours"
