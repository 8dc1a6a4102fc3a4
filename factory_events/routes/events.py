# factory_events/routes/events.py

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from factory_events.config.ingest_config import load_ingest_config
from factory_events.db import get_db
from factory_events.models.machine_event import MachineEventDB
from factory_events.schemas.batch_ingest import BatchIngestOut, Rejection
from factory_events.schemas.machine_event import MachineEventIn, MachineEventOut
from factory_events.services import event_store
from factory_events.services.ingest import IngestConflictError, ingest_batch
from factory_events.util.time import require_utc_aware

router = APIRouter(prefix="/events", tags=["events"])


def _serialize(row: MachineEventDB) -> MachineEventOut:
    return MachineEventOut(
        event_id=row.event_id,
        event_time=row.event_time,
        received_time=row.received_time,
        machine_id=row.machine_id,
        duration_ms=row.duration_ms,
        defect_count=row.defect_count,
        factory_id=row.factory_id,
        line_id=row.line_id,
    )


@router.post("/batch", response_model=BatchIngestOut)
def post_batch(events: List[MachineEventIn], db: Session = Depends(get_db)):
    try:
        res = ingest_batch(db, events)
    except IngestConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SQLAlchemyError:
        raise HTTPException(status_code=503, detail="event store unavailable")

    return BatchIngestOut(
        accepted=res.accepted,
        deduped=res.deduped,
        updated=res.updated,
        rejected=res.rejected,
        rejections=[Rejection(event_id=r.event_id, reason=r.reason) for r in res.rejections],
    )


@router.get("", response_model=List[MachineEventOut])
def list_events(
    machine_id: Optional[str] = Query(default=None, alias="machineId"),
    since: Optional[datetime] = Query(default=None),
    until: Optional[datetime] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    try:
        since_utc = require_utc_aware(since, "since") if since else None
        until_utc = require_utc_aware(until, "until") if until else None
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    rows = event_store.list_events(
        db,
        machine_id=machine_id,
        since=since_utc,
        until=until_utc,
        limit=limit or load_ingest_config().events_default_limit(),
    )
    return [_serialize(r) for r in rows]


@router.get("/{event_id}", response_model=MachineEventOut)
def get_event(event_id: str, db: Session = Depends(get_db)):
    row = event_store.get_event(db, event_id)
    if not row:
        raise HTTPException(status_code=404, detail="Event not found")
    return _serialize(row)
