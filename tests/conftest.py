import datetime as dt
import os

# antes de importar a app: sem migrações no startup e banco em memória
os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_clock, get_db  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import api  # noqa: E402
from app.schemas.scan import AttendanceRecordRead, ScanKind, SessionContext, WindowConfig  # noqa: E402

UTC = dt.timezone.utc


def at(hour: int, minute: int = 0, second: int = 0) -> dt.datetime:
    """Instante fixo no dia de teste (10/03/2025, UTC)."""
    return dt.datetime(2025, 3, 10, hour, minute, second, tzinfo=UTC)


@pytest.fixture()
def ts():
    return at


@pytest.fixture()
def make_session():
    def _make(
        *,
        id="s1",
        event_id="e1",
        start=at(8),
        end=at(12),
        time_in=(at(9), at(9, 30)),
        time_out=None,
        is_active=True,
        qr_seed=None,
    ) -> SessionContext:
        return SessionContext(
            id=id,
            event_id=event_id,
            name="Sessão de teste",
            start_time=start,
            end_time=end,
            is_active=is_active,
            time_in_window=WindowConfig(start=time_in[0], end=time_in[1]) if time_in else None,
            time_out_window=WindowConfig(start=time_out[0], end=time_out[1]) if time_out else None,
            qr_seed=qr_seed,
        )
    return _make


@pytest.fixture()
def make_record():
    counter = {"n": 0}

    def _make(scan_type, timestamp, *, student_id="st1", session_id="s1", event_id="e1") -> AttendanceRecordRead:
        counter["n"] += 1
        return AttendanceRecordRead(
            id=f"r{counter['n']}",
            student_id=student_id,
            session_id=session_id,
            event_id=event_id,
            scan_type=ScanKind(scan_type),
            timestamp=timestamp,
        )
    return _make


# ---------------------------
# Banco e cliente HTTP
# ---------------------------

class FrozenClock:
    def __init__(self, now: dt.datetime):
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture()
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock():
    return FrozenClock(at(9, 15))


@pytest.fixture()
def client(engine, clock):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def _get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    api.dependency_overrides[get_db] = _get_db
    api.dependency_overrides[get_clock] = lambda: clock
    with TestClient(api) as c:
        yield c
    api.dependency_overrides.clear()
