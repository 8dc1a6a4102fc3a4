# factory_events/routes/stats.py

import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from factory_events.config.ingest_config import load_ingest_config
from factory_events.db import get_db
from factory_events.schemas.stats import MachineStatsOut, TopDefectLineOut
from factory_events.services.machine_stats import machine_window_stats
from factory_events.services.top_lines import top_defect_lines
from factory_events.util.jsonlog import get_json_logger, log_event
from factory_events.util.time import format_instant, require_utc_aware

router = APIRouter(prefix="/stats", tags=["stats"])

logger = get_json_logger("stats")


def _window(start: datetime, end: datetime, start_name: str, end_name: str) -> tuple[datetime, datetime]:
    try:
        return require_utc_aware(start, start_name), require_utc_aware(end, end_name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=MachineStatsOut)
def get_machine_stats(
    machine_id: str = Query(..., alias="machineId", min_length=1),
    start: datetime = Query(..., description="ISO 8601 UTC, inclusive"),
    end: datetime = Query(..., description="ISO 8601 UTC, exclusive"),
    db: Session = Depends(get_db),
):
    start, end = _window(start, end, "start", "end")

    log_event(
        logger,
        level="INFO",
        event="stats_query",
        run_id=str(uuid.uuid4()),
        msg="machine stats requested",
        machine_id=machine_id,
        start=format_instant(start),
        end=format_instant(end),
    )

    try:
        s = machine_window_stats(db, machine_id, start, end)
    except SQLAlchemyError:
        raise HTTPException(status_code=503, detail="event store unavailable")

    return MachineStatsOut(
        machine_id=s.machine_id,
        start=s.start,
        end=s.end,
        events_count=s.events_count,
        defects_count=s.defects_count,
        avg_defect_rate=s.avg_defect_rate,
        status=s.status,
    )


@router.get("/top-defect-lines", response_model=List[TopDefectLineOut])
def get_top_defect_lines(
    factory_id: str = Query(..., alias="factoryId", min_length=1),
    from_: datetime = Query(..., alias="from", description="ISO 8601 UTC, inclusive"),
    to: datetime = Query(..., description="ISO 8601 UTC, exclusive"),
    limit: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
):
    cfg = load_ingest_config()
    start, end = _window(from_, to, "from", "to")

    # Larger requests are served up to the configured maximum.
    limit = min(limit or cfg.top_lines_default_limit(), cfg.top_lines_max_limit())

    log_event(
        logger,
        level="INFO",
        event="top_lines_query",
        run_id=str(uuid.uuid4()),
        msg="top defect lines requested",
        factory_id=factory_id,
        start=format_instant(start),
        end=format_instant(end),
        limit=limit,
    )

    try:
        lines = top_defect_lines(db, factory_id, start, end, limit=limit)
    except SQLAlchemyError:
        raise HTTPException(status_code=503, detail="event store unavailable")

    return [
        TopDefectLineOut(
            line_id=ln.line_id,
            total_defects=ln.total_defects,
            event_count=ln.event_count,
            defects_percent=ln.defects_percent,
        )
        for ln in lines
    ]
