# app/api/v1/attendance.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.crud.attendance import attendance_crud, to_record
from app.crud.event_session import event_session_crud
from app.schemas.attendance import AttendanceOut
from app.schemas.scan import AttendanceRecordRead, ScanKind, SessionScanStats
from app.services.scanning import summarize_session_scans

router = APIRouter()

@router.get("/", response_model=List[AttendanceOut])
def list_attendance(
    event_id: Optional[int] = Query(None),
    session_id: Optional[int] = Query(None),
    student_id: Optional[int] = Query(None),
    scan_type: Optional[ScanKind] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return attendance_crud.list(
        db, event_id=event_id, session_id=session_id, student_id=student_id,
        scan_type=scan_type, skip=skip, limit=limit,
    )

@router.get("/sessions/{session_id}/stats", response_model=SessionScanStats)
def session_stats(session_id: int, db: Session = Depends(get_db)):
    if not event_session_crud.get(db, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    records = attendance_crud.records_for_session(db, session_id)
    return summarize_session_scans(records, str(session_id))

@router.get("/students/{student_id}/sessions/{session_id}", response_model=List[AttendanceRecordRead])
def student_session_history(student_id: int, session_id: int, db: Session = Depends(get_db)):
    # histórico do aluno na sessão, mais recente primeiro
    rows = attendance_crud.list(db, student_id=student_id, session_id=session_id)
    return [to_record(a) for a in rows]
