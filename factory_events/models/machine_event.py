# models/machine_event.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from factory_events.db import Base

# defect_count value meaning "unknown"; excluded from every defect aggregation.
UNKNOWN_DEFECT_COUNT = -1


class MachineEventDB(Base):
    __tablename__ = "machine_events"

    event_id: Mapped[str] = mapped_column(String(100), primary_key=True)

    event_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    received_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    machine_id: Mapped[str] = mapped_column(String(50), nullable=False)
    duration_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    defect_count: Mapped[int] = mapped_column(Integer, nullable=False)

    # sha256 hex over the content fields (see services/fingerprint.py)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)

    factory_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    line_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Optimistic lock token; a flush against a stale version raises StaleDataError.
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


Index("ix_machine_events_machine_time", MachineEventDB.machine_id, MachineEventDB.event_time)
Index("ix_machine_events_event_time", MachineEventDB.event_time)
Index("ix_machine_events_line_time", MachineEventDB.line_id, MachineEventDB.event_time)
Index("ix_machine_events_factory_time", MachineEventDB.factory_id, MachineEventDB.event_time)
