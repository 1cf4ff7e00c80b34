import datetime as dt
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload
from app.crud.base import CRUDBase, parse_ref
from app.models.attendance import Attendance
from app.schemas.scan import AttendanceRecordRead, ScanKind


def to_record(att: Attendance) -> AttendanceRecordRead:
    return AttendanceRecordRead(
        id=str(att.id),
        student_id=str(att.student_id),
        session_id=str(att.session_id),
        event_id=str(att.event_id),
        scan_type=ScanKind(att.scan_type),
        timestamp=att.created_at,
        organizer_id=att.scanned_by,
    )


class CRUDAttendance(CRUDBase[Attendance, None, None]):
    # ---- leituras usadas pela guarda de duplicidade (mais recente primeiro) ----
    def history_for_session(self, db: Session, student_id: str, session_id: str) -> List[AttendanceRecordRead]:
        sid, sess = parse_ref(student_id), parse_ref(session_id)
        if sid is None or sess is None:
            return []
        stmt = (
            select(Attendance)
            .where(Attendance.student_id == sid, Attendance.session_id == sess)
            .order_by(Attendance.created_at.desc())
        )
        return [to_record(a) for a in db.scalars(stmt).all()]

    def history_for_event(self, db: Session, student_id: str, event_id: str) -> List[AttendanceRecordRead]:
        sid, ev = parse_ref(student_id), parse_ref(event_id)
        if sid is None or ev is None:
            return []
        stmt = (
            select(Attendance)
            .where(Attendance.student_id == sid, Attendance.event_id == ev)
            .order_by(Attendance.created_at.desc())
        )
        return [to_record(a) for a in db.scalars(stmt).all()]

    def records_for_session(self, db: Session, session_id: int) -> List[AttendanceRecordRead]:
        stmt = select(Attendance).where(Attendance.session_id == session_id)
        return [to_record(a) for a in db.scalars(stmt).all()]

    # ---- escrita ----
    def record_scan(
        self,
        db: Session,
        *,
        student_id: int,
        session_id: int,
        event_id: int,
        scan_type: ScanKind,
        scanned_by: Optional[str],
        at: dt.datetime,
    ) -> Attendance:
        # IntegrityError (uq student/session/type) sobe para quem chamou
        att = Attendance(
            student_id=student_id,
            session_id=session_id,
            event_id=event_id,
            scan_type=ScanKind(scan_type).value,
            scanned_by=scanned_by,
            created_at=at,
        )
        db.add(att); db.commit(); db.refresh(att)
        return att

    def list(
        self,
        db: Session,
        *,
        event_id: Optional[int] = None,
        session_id: Optional[int] = None,
        student_id: Optional[int] = None,
        scan_type: Optional[ScanKind] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Attendance]:
        stmt = select(Attendance).options(selectinload(Attendance.student), selectinload(Attendance.session))
        if event_id is not None:
            stmt = stmt.where(Attendance.event_id == event_id)
        if session_id is not None:
            stmt = stmt.where(Attendance.session_id == session_id)
        if student_id is not None:
            stmt = stmt.where(Attendance.student_id == student_id)
        if scan_type is not None:
            stmt = stmt.where(Attendance.scan_type == ScanKind(scan_type).value)
        stmt = stmt.order_by(Attendance.created_at.desc(), Attendance.id.desc()).offset(skip).limit(limit)
        return list(db.scalars(stmt).all())

attendance_crud = CRUDAttendance(Attendance)
