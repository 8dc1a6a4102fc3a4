from datetime import datetime, timedelta, timezone

import pytest

from factory_events.services.ingest import ingest_batch
from factory_events.services.top_lines import defects_percent, top_defect_lines
from conftest import NOW

FROM = datetime(2026, 1, 15, 0, 0, tzinfo=timezone.utc)
TO = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _seed(db, make_event, rows):
    """rows: (factory_id, line_id, defect_count, event_time)"""
    events = [
        make_event(
            event_id=f"E-{i}",
            factory_id=factory_id,
            line_id=line_id,
            defect_count=defects,
            event_time=t,
        )
        for i, (factory_id, line_id, defects, t) in enumerate(rows)
    ]
    assert ingest_batch(db, events, now=NOW).accepted == len(events)


def test_percent_matches_reference_figures():
    assert defects_percent(150, 5000) == 3.0
    assert defects_percent(80, 4500) == 1.78
    assert defects_percent(0, 0) == 0.0


def test_ranking_by_total_defects(db, make_event):
    t = FROM + timedelta(hours=1)
    _seed(
        db,
        make_event,
        [
            ("F01", "L2", 1, t),
            ("F01", "L1", 4, t),
            ("F01", "L1", 6, t),
            ("F01", "L2", 2, t),
            ("F01", "L3", 0, t),
        ],
    )
    lines = top_defect_lines(db, "F01", FROM, TO)

    assert [ln.line_id for ln in lines] == ["L1", "L2", "L3"]
    assert (lines[0].total_defects, lines[0].event_count, lines[0].defects_percent) == (10, 2, 500.0)
    assert (lines[1].total_defects, lines[1].event_count, lines[1].defects_percent) == (3, 2, 150.0)
    assert (lines[2].total_defects, lines[2].event_count, lines[2].defects_percent) == (0, 1, 0.0)


def test_ties_ordered_by_line_id(db, make_event):
    t = FROM + timedelta(hours=1)
    _seed(db, make_event, [("F01", "L9", 3, t), ("F01", "L1", 3, t), ("F01", "L5", 3, t)])
    assert [ln.line_id for ln in top_defect_lines(db, "F01", FROM, TO)] == ["L1", "L5", "L9"]


def test_unknown_defects_excluded_from_sum_and_count(db, make_event):
    t = FROM + timedelta(hours=1)
    _seed(db, make_event, [("F01", "L1", 3, t), ("F01", "L1", -1, t), ("F01", "L1", 1, t)])
    (line,) = top_defect_lines(db, "F01", FROM, TO)
    assert (line.total_defects, line.event_count, line.defects_percent) == (4, 2, 200.0)


def test_line_with_only_unknown_defects_is_absent(db, make_event):
    t = FROM + timedelta(hours=1)
    _seed(db, make_event, [("F01", "L1", -1, t), ("F01", "L2", 1, t)])
    assert [ln.line_id for ln in top_defect_lines(db, "F01", FROM, TO)] == ["L2"]


def test_null_line_other_factory_and_outside_window_excluded(db, make_event):
    inside = FROM + timedelta(hours=1)
    _seed(
        db,
        make_event,
        [
            ("F01", "L1", 1, inside),
            ("F01", None, 50, inside),
            ("F02", "L1", 50, inside),
            ("F01", "L1", 50, FROM - timedelta(seconds=1)),
            ("F01", "L1", 50, TO),
            ("F01", "L1", 2, FROM),
        ],
    )
    (line,) = top_defect_lines(db, "F01", FROM, TO)
    assert (line.line_id, line.total_defects, line.event_count) == ("L1", 3, 2)


def test_limit_truncates(db, make_event):
    t = FROM + timedelta(hours=1)
    _seed(db, make_event, [("F01", f"L{i}", i, t) for i in range(1, 6)])

    lines = top_defect_lines(db, "F01", FROM, TO, limit=2)
    assert [ln.line_id for ln in lines] == ["L5", "L4"]


def test_limit_must_be_positive(db):
    with pytest.raises(ValueError):
        top_defect_lines(db, "F01", FROM, TO, limit=0)


def test_unknown_factory_is_empty(db):
    assert top_defect_lines(db, "F-404", FROM, TO) == []
