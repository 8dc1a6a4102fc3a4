from datetime import datetime

from pydantic import field_serializer

from factory_events.schemas.base import CamelModel
from factory_events.util.time import format_instant


class MachineStatsOut(CamelModel):
    machine_id: str
    start: datetime
    end: datetime
    events_count: int
    defects_count: int
    avg_defect_rate: float
    status: str  # "Healthy" / "Warning"

    @field_serializer("start", "end")
    def _instant(self, v: datetime) -> str:
        return format_instant(v)


class TopDefectLineOut(CamelModel):
    line_id: str
    total_defects: int
    event_count: int
    defects_percent: float
