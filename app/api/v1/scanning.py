# app/api/v1/scanning.py
from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends, HTTPException, Body
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_duplicate_config, get_now, get_scan_policy
from app.crud.event_session import event_session_crud
from app.schemas.scan import (
    DuplicateCheckConfig,
    ScanPolicy,
    ScanRequest,
    ScanResponse,
    SessionWindowsOut,
)
from app.services.scanning import resolve_windows, session_status
from app.services.scanning.service import process_scan

router = APIRouter()

@router.post("/process", response_model=ScanResponse)
def process(
    body: ScanRequest = Body(...),
    db: Session = Depends(get_db),
    now: dt.datetime = Depends(get_now),
    policy: ScanPolicy = Depends(get_scan_policy),
    config: DuplicateCheckConfig = Depends(get_duplicate_config),
):
    # rejeições de negócio voltam 200 com success=false
    return process_scan(
        db,
        qr_data=body.qr_data,
        organizer_id=body.organizer_id,
        now=now,
        session_id=body.session_id,
        event_id=body.event_id,
        student_id=body.student_id,
        scan_type=body.scan_type,
        policy=policy,
        config=config,
    )

@router.get("/sessions/{session_id}/windows", response_model=SessionWindowsOut)
def session_windows(session_id: int, db: Session = Depends(get_db), now: dt.datetime = Depends(get_now)):
    ctx = event_session_crud.get_context(db, str(session_id))
    if ctx is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionWindowsOut(status=session_status(ctx, now), windows=resolve_windows(ctx, now))
