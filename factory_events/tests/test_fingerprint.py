import hashlib
import json
from datetime import datetime, timedelta, timezone

from factory_events.services.fingerprint import event_fingerprint


def test_fingerprint_is_sha256_hex(make_event):
    fp = event_fingerprint(make_event())
    assert len(fp) == 64
    assert all(c in "0123456789abcdef" for c in fp)


def test_fingerprint_canonical_form_is_stable(make_event):
    # Persisted fingerprints are compared across processes; pin the exact form.
    ev = make_event(
        event_time=datetime(2026, 1, 15, 10, 0, 0, 123000, tzinfo=timezone.utc),
        machine_id="M-001",
        duration_ms=1500,
        defect_count=2,
        factory_id="F01",
        line_id=None,
    )
    canonical = '["2026-01-15T10:00:00.123Z","M-001",1500,2,"F01",""]'
    assert event_fingerprint(ev) == hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def test_identity_and_receipt_do_not_affect_fingerprint(make_event):
    a = make_event(event_id="E-1")
    b = make_event(event_id="E-2")
    assert event_fingerprint(a) == event_fingerprint(b)


def test_same_instant_in_other_offset_hashes_the_same(make_event):
    utc = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)
    cet = utc.astimezone(timezone(timedelta(hours=1)))
    assert event_fingerprint(make_event(event_time=utc)) == event_fingerprint(
        make_event(event_time=cet)
    )


def test_missing_optional_strings_hash_as_empty(make_event):
    assert event_fingerprint(make_event(line_id=None)) == event_fingerprint(
        make_event(line_id="")
    )


def test_each_content_field_changes_the_fingerprint(make_event):
    base = event_fingerprint(make_event(factory_id="F01", line_id="L1"))
    variants = [
        make_event(factory_id="F01", line_id="L1", event_time=datetime(2026, 1, 1, tzinfo=timezone.utc)),
        make_event(factory_id="F01", line_id="L1", machine_id="M-002"),
        make_event(factory_id="F01", line_id="L1", duration_ms=1001),
        make_event(factory_id="F01", line_id="L1", defect_count=-1),
        make_event(factory_id="F02", line_id="L1"),
        make_event(factory_id="F01", line_id="L2"),
    ]
    fps = {event_fingerprint(v) for v in variants}
    assert base not in fps
    assert len(fps) == len(variants)


def test_separator_characters_in_values_do_not_collide(make_event):
    a = make_event(factory_id="F|1", line_id="L")
    b = make_event(factory_id="F", line_id="1|L")
    assert event_fingerprint(a) != event_fingerprint(b)
    # sanity: the JSON form keeps them apart
    assert json.dumps(["F|1", "L"]) != json.dumps(["F", "1|L"])
