# services/event_store.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from factory_events.models.machine_event import UNKNOWN_DEFECT_COUNT, MachineEventDB


def find_by_ids(
    db: Session, ids: Iterable[str], *, chunk_size: int = 500
) -> dict[str, MachineEventDB]:
    wanted = list(dict.fromkeys(ids))
    found: dict[str, MachineEventDB] = {}
    for i in range(0, len(wanted), chunk_size):
        chunk = wanted[i : i + chunk_size]
        q = select(MachineEventDB).where(MachineEventDB.event_id.in_(chunk))
        for row in db.execute(q).scalars().all():
            found[row.event_id] = row
    return found


def bulk_upsert(
    db: Session,
    inserts: list[MachineEventDB],
    updates: list[MachineEventDB],
) -> None:
    """
    Stages new rows and flushes pending changes on already-loaded rows.

    Updates are conditional on the row version loaded by find_by_ids
    (StaleDataError on mismatch); inserts rely on the primary key
    (IntegrityError on a concurrent insert). Commit is up to the caller.
    """
    if inserts:
        db.add_all(inserts)
    for row in updates:
        db.add(row)
    db.flush()


def _window(q, start: datetime, end: datetime):
    return q.where(MachineEventDB.event_time >= start).where(MachineEventDB.event_time < end)


def count_in_window(db: Session, machine_id: str, start: datetime, end: datetime) -> int:
    q = select(func.count()).select_from(MachineEventDB).where(MachineEventDB.machine_id == machine_id)
    return int(db.execute(_window(q, start, end)).scalar_one())


def sum_defects_in_window(
    db: Session,
    machine_id: str,
    start: datetime,
    end: datetime,
    *,
    exclude_sentinel: bool = True,
) -> int:
    q = select(func.coalesce(func.sum(MachineEventDB.defect_count), 0)).where(
        MachineEventDB.machine_id == machine_id
    )
    if exclude_sentinel:
        q = q.where(MachineEventDB.defect_count > UNKNOWN_DEFECT_COUNT)
    return int(db.execute(_window(q, start, end)).scalar_one())


def group_defects_by_line(
    db: Session,
    factory_id: str,
    start: datetime,
    end: datetime,
    *,
    exclude_sentinel: bool = True,
    exclude_null_line: bool = True,
) -> list[tuple[Optional[str], int, int]]:
    """
    Per-line (line_id, total_defects, event_count) over [start, end).
    With exclude_sentinel, event_count only counts rows with a known defect count.
    """
    q = select(
        MachineEventDB.line_id,
        func.coalesce(func.sum(MachineEventDB.defect_count), 0),
        func.count(),
    ).where(MachineEventDB.factory_id == factory_id)
    if exclude_sentinel:
        q = q.where(MachineEventDB.defect_count > UNKNOWN_DEFECT_COUNT)
    if exclude_null_line:
        q = q.where(MachineEventDB.line_id.is_not(None))
    q = _window(q, start, end).group_by(MachineEventDB.line_id)

    return [(line_id, int(total), int(count)) for line_id, total, count in db.execute(q).all()]


def get_event(db: Session, event_id: str) -> Optional[MachineEventDB]:
    return db.get(MachineEventDB, event_id)


def list_events(
    db: Session,
    *,
    machine_id: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    limit: int = 100,
) -> list[MachineEventDB]:
    q = select(MachineEventDB)
    if machine_id:
        q = q.where(MachineEventDB.machine_id == machine_id)
    if since:
        q = q.where(MachineEventDB.event_time >= since)
    if until:
        q = q.where(MachineEventDB.event_time < until)
    q = q.order_by(MachineEventDB.event_time.desc(), MachineEventDB.event_id.asc())
    if limit:
        q = q.limit(limit)
    return list(db.execute(q).scalars().all())
