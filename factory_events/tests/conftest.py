import os

# Keep the module-level engine off PostgreSQL; every test gets its own SQLite file below.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("FACTORY_CREATE_TABLES", "0")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from factory_events.db import get_db, make_engine, make_session_factory  # noqa: E402
from factory_events.init_db import init_db  # noqa: E402
from factory_events.main import app  # noqa: E402
from factory_events.schemas.machine_event import MachineEventIn  # noqa: E402

# Fixed ingestion instant for tests that need exact boundaries.
NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'events.db'}")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_event():
    def _make(**overrides) -> MachineEventIn:
        fields = {
            "event_id": "E-1",
            "event_time": NOW - timedelta(hours=1),
            "machine_id": "M-001",
            "duration_ms": 1000,
            "defect_count": 0,
            "factory_id": None,
            "line_id": None,
        }
        fields.update(overrides)
        return MachineEventIn(**fields)

    return _make
