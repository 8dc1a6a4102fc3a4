from __future__ import annotations

import hashlib
import json

from factory_events.schemas.machine_event import MachineEventIn
from factory_events.util.time import format_instant


def event_fingerprint(event: MachineEventIn) -> str:
    """
    SHA-256 (hex) over the content fields, in a fixed order:
    eventTime, machineId, durationMs, defectCount, factoryId, lineId.

    event_id and receivedTime are not part of the digest, so a resend of the
    same content always hashes the same. Missing optional strings hash as "".
    The value is persisted and compared across processes; the canonical
    form must not change.
    """
    key_data = [
        format_instant(event.event_time),
        event.machine_id,
        int(event.duration_ms),
        int(event.defect_count),
        event.factory_id or "",
        event.line_id or "",
    ]
    canonical_string = json.dumps(key_data, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(canonical_string.encode("utf-8")).hexdigest()
