from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from factory_events.services import event_store
from factory_events.util.numbers import ratio_half_up


@dataclass(frozen=True)
class LineDefects:
    line_id: str
    total_defects: int
    event_count: int
    defects_percent: float


def defects_percent(total_defects: int, event_count: int) -> float:
    return ratio_half_up(total_defects * 100, event_count)


def top_defect_lines(
    db: Session,
    factory_id: str,
    start: datetime,
    end: datetime,
    limit: int = 10,
) -> list[LineDefects]:
    """
    Production lines of one factory ranked by total defects over [start, end).

    Only events with a known defect count and a line id take part, in both the
    sum and the event count. Ties on total_defects are ordered by line_id.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")

    groups = event_store.group_defects_by_line(db, factory_id, start, end)
    ranked = sorted(groups, key=lambda g: (-g[1], g[0]))

    return [
        LineDefects(
            line_id=line_id,
            total_defects=total,
            event_count=count,
            defects_percent=defects_percent(total, count),
        )
        for line_id, total, count in ranked[:limit]
    ]
