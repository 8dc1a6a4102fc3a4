# schemas/machine_event.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field, field_serializer, field_validator

from factory_events.schemas.base import CamelModel
from factory_events.util.time import format_instant, require_utc_aware, truncate_to_millis

# Range of the 32-bit defect_count column.
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class MachineEventIn(CamelModel):
    """
    One candidate event as sent by a machine gateway.

    durationMs and eventTime may be missing here; their absence is an
    item-level rejection decided by the validator, not a malformed batch.
    A client-supplied receivedTime is ignored (the server assigns it).
    """

    event_id: str = Field(..., min_length=1, max_length=100)
    event_time: Optional[datetime] = None
    machine_id: str = Field(..., min_length=1, max_length=50)
    duration_ms: Optional[int] = None
    defect_count: int = Field(..., ge=INT32_MIN, le=INT32_MAX)
    factory_id: Optional[str] = Field(default=None, max_length=50)
    line_id: Optional[str] = Field(default=None, max_length=50)

    @field_validator("event_time")
    @classmethod
    def _event_time_must_be_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return v
        return truncate_to_millis(require_utc_aware(v, field_name="eventTime"))


class MachineEventOut(CamelModel):
    event_id: str
    event_time: datetime
    received_time: datetime
    machine_id: str
    duration_ms: int
    defect_count: int
    factory_id: Optional[str] = None
    line_id: Optional[str] = None

    @field_serializer("event_time", "received_time")
    def _instant(self, v: datetime) -> str:
        return format_instant(v)
