from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from factory_events.config.ingest_config import IngestConfig, load_ingest_config
from factory_events.services import event_store
from factory_events.util.numbers import ratio_half_up

STATUS_HEALTHY = "Healthy"
STATUS_WARNING = "Warning"


@dataclass(frozen=True)
class MachineWindowStats:
    machine_id: str
    start: datetime
    end: datetime
    events_count: int
    defects_count: int
    avg_defect_rate: float
    status: str


def health_status(avg_defect_rate: float, warning_rate: float = 2.0) -> str:
    return STATUS_HEALTHY if avg_defect_rate < warning_rate else STATUS_WARNING


def defect_rate_per_hour(defects_count: int, start: datetime, end: datetime) -> float:
    """
    Defects per hour over the window, using whole seconds of (end - start).
    Empty or inverted windows give 0.
    """
    window_seconds = int((end - start).total_seconds())
    # defects / (seconds / 3600) == defects * 3600 / seconds
    return ratio_half_up(defects_count * 3600, window_seconds)


def machine_window_stats(
    db: Session,
    machine_id: str,
    start: datetime,
    end: datetime,
    *,
    cfg: IngestConfig | None = None,
) -> MachineWindowStats:
    """
    Health summary for one machine over [start, end) on eventTime.

    defects_count skips unknown (-1) defect counts; those events still
    count in events_count.
    """
    cfg = cfg or load_ingest_config()

    events_count = event_store.count_in_window(db, machine_id, start, end)
    defects_count = event_store.sum_defects_in_window(db, machine_id, start, end)
    rate = defect_rate_per_hour(defects_count, start, end)

    return MachineWindowStats(
        machine_id=machine_id,
        start=start,
        end=end,
        events_count=events_count,
        defects_count=defects_count,
        avg_defect_rate=rate,
        status=health_status(rate, cfg.warning_defect_rate()),
    )
