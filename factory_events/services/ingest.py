from __future__ import annotations

import time
import traceback
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from factory_events.config.ingest_config import IngestConfig, load_ingest_config
from factory_events.models.machine_event import MachineEventDB
from factory_events.schemas.machine_event import MachineEventIn
from factory_events.services import event_store
from factory_events.services.fingerprint import event_fingerprint
from factory_events.services.reconciler import Outcome, apply_update, new_row, reconcile
from factory_events.services.validation import validate_event
from factory_events.util.jsonlog import get_json_logger, log_event
from factory_events.util.time import utcnow

logger = get_json_logger("ingest")

# One retry after an optimistic-lock or unique-key conflict.
MAX_WRITE_ATTEMPTS = 2


class IngestConflictError(RuntimeError):
    """A concurrent writer won the same event_id twice in a row."""


@dataclass
class RejectionDetail:
    event_id: str
    reason: str


@dataclass
class IngestResult:
    accepted: int = 0
    deduped: int = 0
    updated: int = 0
    rejections: list[RejectionDetail] = field(default_factory=list)
    # Earlier in-batch duplicates replaced by a later item with the same id.
    # Not part of the API response, only logged.
    superseded: int = 0

    @property
    def rejected(self) -> int:
        return len(self.rejections)


@dataclass
class _WriteCounts:
    accepted: int = 0
    deduped: int = 0
    updated: int = 0


def ingest_batch(
    db: Session,
    events: Sequence[MachineEventIn],
    *,
    now: datetime | None = None,
    cfg: IngestConfig | None = None,
) -> IngestResult:
    """
    Validates, reconciles and stores one batch.

    - One `now` for the whole batch: validation cutoff and receivedTime.
    - Invalid items become rejections; they never stop the batch.
    - Within the batch the last valid item per event_id wins.
    - One lookup, one bulk write, one commit. A write conflict is retried
      once against a fresh snapshot; store errors roll back and propagate.
    """
    result = IngestResult()
    if not events:
        return result

    cfg = cfg or load_ingest_config()
    now = now or utcnow()
    run_id = str(uuid.uuid4())
    t0 = time.monotonic()

    log_event(
        logger,
        level="INFO",
        event="ingest_batch_start",
        run_id=run_id,
        msg="batch received",
        size=len(events),
    )

    survivors: dict[str, MachineEventIn] = {}
    for ev in events:
        reason = validate_event(
            ev,
            now,
            max_duration_ms=cfg.max_duration_ms(),
            max_future_minutes=cfg.max_future_minutes(),
        )
        if reason is not None:
            result.rejections.append(RejectionDetail(event_id=ev.event_id, reason=reason))
            continue
        if ev.event_id in survivors:
            result.superseded += 1
        survivors[ev.event_id] = ev

    fingerprints = {eid: event_fingerprint(ev) for eid, ev in survivors.items()}

    counts = _WriteCounts()
    for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
        try:
            counts = _reconcile_and_write(db, survivors, fingerprints, now, cfg)
            db.commit()
            break
        except (StaleDataError, IntegrityError) as e:
            db.rollback()
            if attempt == MAX_WRITE_ATTEMPTS:
                _log_failure(run_id, t0, e, "batch write conflict persisted after retry")
                raise IngestConflictError(
                    f"concurrent write conflict on batch ({type(e).__name__})"
                ) from e
            log_event(
                logger,
                level="WARN",
                event="ingest_batch_conflict",
                run_id=run_id,
                msg="write conflict, retrying with fresh snapshot",
                attempt=attempt,
                error={"type": type(e).__name__, "message": str(e)},
            )
        except SQLAlchemyError as e:
            db.rollback()
            _log_failure(run_id, t0, e, "batch write failed")
            raise

    result.accepted = counts.accepted
    result.deduped = counts.deduped
    result.updated = counts.updated

    log_event(
        logger,
        level="INFO",
        event="ingest_batch_end",
        run_id=run_id,
        msg="batch processed",
        duration_ms=int((time.monotonic() - t0) * 1000),
        counts={
            "accepted": result.accepted,
            "deduped": result.deduped,
            "updated": result.updated,
            "rejected": result.rejected,
            "superseded": result.superseded,
        },
    )
    return result


def _reconcile_and_write(
    db: Session,
    survivors: dict[str, MachineEventIn],
    fingerprints: dict[str, str],
    now: datetime,
    cfg: IngestConfig,
) -> _WriteCounts:
    counts = _WriteCounts()
    if not survivors:
        return counts

    existing = event_store.find_by_ids(db, survivors.keys(), chunk_size=cfg.lookup_chunk_size())

    inserts: list[MachineEventDB] = []
    updates: list[MachineEventDB] = []
    for event_id, ev in survivors.items():
        fp = fingerprints[event_id]
        row = existing.get(event_id)
        outcome = reconcile(ev, fp, now, row)

        if outcome is Outcome.ACCEPT:
            inserts.append(new_row(ev, fp, now))
            counts.accepted += 1
        elif outcome is Outcome.UPDATE:
            updates.append(apply_update(row, ev, fp, now))
            counts.updated += 1
        else:
            counts.deduped += 1

    if inserts or updates:
        event_store.bulk_upsert(db, inserts, updates)
    return counts


def _log_failure(run_id: str, t0: float, e: Exception, msg: str) -> None:
    log_event(
        logger,
        level="ERROR",
        event="ingest_batch_error",
        run_id=run_id,
        msg=msg,
        duration_ms=int((time.monotonic() - t0) * 1000),
        error={
            "type": type(e).__name__,
            "message": str(e),
            "stacktrace": traceback.format_exc(),
        },
    )
