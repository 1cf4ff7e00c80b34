import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.core.config import settings
from app.crud.attendance import attendance_crud
from app.crud.base import parse_ref
from app.crud.event_session import event_session_crud
from app.models import Attendance, Event, EventSession, Student
from app.schemas.event_session import EventSessionUpdate
from app.schemas.scan import DuplicateCheckConfig, ScanKind
from app.services.qr import build_qr_token, build_session_qr_text, build_student_qr_text
from app.services.scanning.service import process_scan

from tests.conftest import at


@pytest.fixture()
def seeded(db):
    event = Event(title="Semana Acadêmica", start_at=at(8), end_at=at(18))
    db.add(event); db.flush()
    session = EventSession(
        event_id=event.id,
        name="Abertura",
        start_at=at(8),
        end_at=at(12),
        time_in_start=at(9),
        time_in_end=at(9, 30),
        time_out_start=at(11),
        time_out_end=at(11, 30),
        is_active=True,
        qr_seed="seed-abc",
    )
    student = Student(name="Ana", email="ana@example.org")
    db.add_all([session, student]); db.commit()
    return event, session, student


def _qr(session, extra=""):
    return build_session_qr_text(str(session.id), str(session.event_id), extra, marker="DTP")


def _scan(db, session, student, now, **kw):
    return process_scan(db, qr_data=kw.pop("qr_data", _qr(session)), organizer_id="org-1", now=now,
                        student_id=str(student.id), **kw)


def test_accepted_scan_is_persisted(db, seeded):
    _, session, student = seeded
    r = _scan(db, session, student, at(9, 15))
    assert r.success
    assert r.scan_type == "time_in"
    assert r.attendance_id is not None

    row = db.scalar(select(Attendance))
    assert str(row.id) == r.attendance_id
    assert row.scan_type == "time_in"
    assert row.scanned_by == "org-1"
    assert row.event_id == session.event_id


def test_time_in_then_time_out(db, seeded):
    _, session, student = seeded
    assert _scan(db, session, student, at(9, 5)).success

    again = _scan(db, session, student, at(9, 20))
    assert not again.success
    assert again.reason == "multiple_time_in_not_allowed"

    out = _scan(db, session, student, at(11, 10))
    assert out.success
    assert out.scan_type == "time_out"
    assert len(db.scalars(select(Attendance)).all()) == 2


def test_unique_constraint_is_the_backstop(db, seeded):
    _, session, student = seeded
    lenient = DuplicateCheckConfig(
        min_time_between_scans=0,
        allow_multiple_time_in=True,
        duplicate_time_window_minutes=0,
    )
    assert _scan(db, session, student, at(9, 5), config=lenient).success

    r = _scan(db, session, student, at(9, 15), config=lenient)
    assert not r.success
    assert r.reason == "duplicate_scan"
    assert len(db.scalars(select(Attendance)).all()) == 1


def test_unknown_student(db, seeded):
    _, session, _ = seeded
    r = process_scan(db, qr_data=_qr(session), organizer_id="org-1", now=at(9, 15), student_id="999")
    assert not r.success
    assert r.reason == "student_not_found"


def test_unknown_session(db, seeded):
    _, _, student = seeded
    r = process_scan(db, qr_data="DTP:session:999:1", organizer_id="org-1", now=at(9, 15),
                     student_id=str(student.id))
    assert not r.success
    assert r.reason == "session_not_found"


def test_student_code_with_selected_session(db, seeded):
    _, session, student = seeded
    r = process_scan(db, qr_data=f"DTP:student:{student.id}", organizer_id="org-1", now=at(9, 15),
                     session_id=str(session.id))
    assert r.success
    assert r.student_id == str(student.id)


def test_requested_scan_type(db, seeded):
    _, session, student = seeded
    r = _scan(db, session, student, at(9, 15), scan_type=ScanKind.time_out)
    assert not r.success
    assert r.reason == "invalid_time"


def test_rotating_token_enforced(db, seeded, monkeypatch):
    _, session, student = seeded
    monkeypatch.setattr(settings, "QR_ENFORCE_ROTATION", True)

    stale = build_qr_token(session.qr_seed, at(8))
    r = _scan(db, session, student, at(9, 15), qr_data=_qr(session, stale))
    assert not r.success
    assert r.reason == "invalid_qr_code"

    fresh = build_qr_token(session.qr_seed, at(9, 15))
    r = _scan(db, session, student, at(9, 15), qr_data=_qr(session, fresh))
    assert r.success


def test_inactive_event_blocks_scans(db, seeded):
    event, session, student = seeded
    event.is_active = False
    db.commit()
    r = _scan(db, session, student, at(9, 15))
    assert r.reason == "session_not_active"


def test_event_must_match_session(db, seeded):
    event, session, student = seeded
    r = _scan(db, session, student, at(9, 15), event_id=str(event.id + 1))
    assert not r.success
    assert r.reason == "invalid_qr_code"

    assert _scan(db, session, student, at(9, 15), event_id=str(event.id)).success


def test_rotating_seed_invalidates_old_tokens(db, seeded, monkeypatch):
    _, session, student = seeded
    monkeypatch.setattr(settings, "QR_ENFORCE_ROTATION", True)
    old_token = build_qr_token(session.qr_seed, at(9, 15))

    event_session_crud.update_session(db, session, EventSessionUpdate(rotate_qr_seed=True))
    assert session.qr_seed != "seed-abc"

    r = _scan(db, session, student, at(9, 15), qr_data=_qr(session, old_token))
    assert r.reason == "invalid_qr_code"

    new_token = build_qr_token(session.qr_seed, at(9, 15))
    assert _scan(db, session, student, at(9, 15), qr_data=_qr(session, new_token)).success


def _count(db):
    return db.scalar(select(func.count()).select_from(Attendance))


@pytest.mark.parametrize("ref,expected", [
    ("1", 1), ("42", 42), (7, 7),
    ("01", None), ("+1", None), (" 1", None), ("1 ", None), ("1_0", None),
    ("0", None), ("-1", None), ("", None), (None, None), ("١", None),
])
def test_parse_ref_only_accepts_canonical_ids(ref, expected):
    assert parse_ref(ref) == expected


def test_padded_student_id_cannot_bypass_the_guard(db, seeded):
    event, session, student = seeded
    other = EventSession(
        event_id=event.id, name="Oficina", start_at=at(8), end_at=at(12),
        time_in_start=at(8, 55), time_in_end=at(9, 30), is_active=True,
    )
    db.add(other); db.commit()
    cfg = DuplicateCheckConfig()

    assert _scan(db, session, student, at(9, 0), config=cfg).success

    r = _scan(db, other, student, at(9, 2), config=cfg)
    assert r.reason == "cross_session_duplicate"

    for ref in (f"0{student.id}", f"+{student.id}", f" {student.id}"):
        r = process_scan(db, qr_data=_qr(other), organizer_id="org-1", now=at(9, 2),
                         student_id=ref, config=cfg)
        assert not r.success
        assert r.reason == "student_not_found"

    r = process_scan(db, qr_data=build_student_qr_text(f"0{student.id}", marker="DTP"),
                     organizer_id="org-1", now=at(9, 2), session_id=str(other.id), config=cfg)
    assert r.reason == "student_not_found"
    assert _count(db) == 1


def test_store_failure_in_history_lookup_still_records(db, seeded, monkeypatch):
    _, session, student = seeded

    def broken(_db, _student, _session):
        raise OperationalError("SELECT attendances", {}, Exception("connection reset"))

    rollbacks = []
    real_rollback = db.rollback

    def tracking_rollback():
        rollbacks.append(True)
        real_rollback()

    monkeypatch.setattr(attendance_crud, "history_for_session", broken)
    monkeypatch.setattr(db, "rollback", tracking_rollback)

    r = _scan(db, session, student, at(9, 15), config=DuplicateCheckConfig())
    assert r.success
    assert r.attendance_id is not None
    assert r.metadata.errors
    # transação desfeita antes da gravação
    assert rollbacks == [True]
    assert _count(db) == 1
