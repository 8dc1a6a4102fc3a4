from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from factory_events.models.machine_event import MachineEventDB
from factory_events.schemas.machine_event import MachineEventIn
from factory_events.util.time import from_db_utc_naive


class Outcome(str, enum.Enum):
    ACCEPT = "ACCEPT"
    DEDUPE = "DEDUPE"
    UPDATE = "UPDATE"


def reconcile(
    incoming: MachineEventIn,
    fingerprint: str,
    now: datetime,
    existing: Optional[MachineEventDB],
) -> Outcome:
    """
    Decision table:
      - no stored row                                  -> ACCEPT
      - stored row, same fingerprint                   -> DEDUPE
      - stored row, other content, now > receivedTime  -> UPDATE
      - stored row, other content, otherwise           -> DEDUPE

    receivedTime (server arrival order) is the tie-breaker, never eventTime.
    """
    if existing is None:
        return Outcome.ACCEPT

    if existing.fingerprint == fingerprint:
        return Outcome.DEDUPE

    if now > from_db_utc_naive(existing.received_time):
        return Outcome.UPDATE

    return Outcome.DEDUPE


def new_row(incoming: MachineEventIn, fingerprint: str, now: datetime) -> MachineEventDB:
    return MachineEventDB(
        event_id=incoming.event_id,
        event_time=incoming.event_time,
        received_time=now,
        machine_id=incoming.machine_id,
        duration_ms=incoming.duration_ms,
        defect_count=incoming.defect_count,
        fingerprint=fingerprint,
        factory_id=incoming.factory_id,
        line_id=incoming.line_id,
    )


def apply_update(
    row: MachineEventDB, incoming: MachineEventIn, fingerprint: str, now: datetime
) -> MachineEventDB:
    # Every field except event_id; version is bumped by the ORM on flush.
    row.event_time = incoming.event_time
    row.received_time = now
    row.machine_id = incoming.machine_id
    row.duration_ms = incoming.duration_ms
    row.defect_count = incoming.defect_count
    row.fingerprint = fingerprint
    row.factory_id = incoming.factory_id
    row.line_id = incoming.line_id
    return row
