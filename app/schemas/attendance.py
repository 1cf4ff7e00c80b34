from __future__ import annotations
from typing import Optional
from datetime import datetime
from pydantic import BaseModel


# ---- referências “lite” usadas na resposta ----

class StudentRef(BaseModel):
    id: int
    name: str
    email: str
    ra: Optional[str] = None

    model_config = {"from_attributes": True}


class EventSessionRef(BaseModel):
    id: int
    event_id: int
    name: str
    start_at: datetime
    end_at: datetime

    model_config = {"from_attributes": True}


# ---- resposta principal ----

class AttendanceOut(BaseModel):
    id: int
    student_id: int
    session_id: int
    event_id: int
    scan_type: str
    scanned_by: Optional[str] = None
    created_at: datetime
    student: StudentRef
    session: EventSessionRef

    model_config = {"from_attributes": True}
