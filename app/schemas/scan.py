# app/schemas/scan.py
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.clock import UtcDatetime
from app.core.config import Settings, settings


# ---------------------------
# Enums
# ---------------------------

class ScanKind(str, Enum):
    time_in = "time_in"
    time_out = "time_out"


class ScanAction(str, Enum):
    time_in = "time_in"
    time_out = "time_out"
    invalid_time = "invalid_time"
    session_not_active = "session_not_active"
    session_not_found = "session_not_found"
    session_not_started = "session_not_started"
    session_ended = "session_ended"
    student_not_found = "student_not_found"
    invalid_qr_code = "invalid_qr_code"
    duplicate_scan = "duplicate_scan"


class WindowReason(str, Enum):
    within_window = "within_window"
    early = "early"
    late = "late"


class SessionStatus(str, Enum):
    inactive = "inactive"
    upcoming = "upcoming"
    active_time_in = "active_time_in"
    active_time_out = "active_time_out"
    between_windows = "between_windows"
    ended = "ended"


class DuplicateReason(str, Enum):
    max_scans_reached = "max_scans_reached"
    too_soon = "too_soon"
    multiple_time_in_not_allowed = "multiple_time_in_not_allowed"
    multiple_time_out_not_allowed = "multiple_time_out_not_allowed"
    within_duplicate_window = "within_duplicate_window"
    time_out_without_time_in = "time_out_without_time_in"
    cross_session_duplicate = "cross_session_duplicate"
    no_duplicate = "no_duplicate"
    error = "error"


class ScanOutcome(str, Enum):
    time_in = "time_in"
    time_out = "time_out"
    rejected = "rejected"


# ---------------------------
# Sessão e janelas
# ---------------------------

class WindowConfig(BaseModel):
    start: UtcDatetime
    end: UtcDatetime

    model_config = {"frozen": True}

    @field_validator("end")
    @classmethod
    def _check_order(cls, v, info):
        start = info.data.get("start")
        if start is not None and v <= start:
            raise ValueError("window end must be after window start")
        return v


class SessionContext(BaseModel):
    """Visão somente-leitura de uma sessão, montada pelo store de sessões."""
    id: str
    event_id: str
    name: Optional[str] = None
    start_time: UtcDatetime
    end_time: UtcDatetime
    is_active: bool = True
    time_in_window: Optional[WindowConfig] = None
    time_out_window: Optional[WindowConfig] = None
    qr_seed: Optional[str] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.end_time < self.start_time:
            raise ValueError("session end_time must not precede start_time")
        return self


class TimeWindow(BaseModel):
    start: UtcDatetime
    end: UtcDatetime
    kind: ScanKind
    is_active: bool
    minutes_until_start: Optional[int] = None
    minutes_since_end: Optional[int] = None
    time_remaining_minutes: int = 0

    model_config = {"frozen": True}


class SessionTimeWindows(BaseModel):
    session_id: str
    session_start: UtcDatetime
    session_end: UtcDatetime
    session_active: bool
    time_in: Optional[TimeWindow] = None
    time_out: Optional[TimeWindow] = None

    model_config = {"frozen": True}

    @property
    def configured(self) -> List[TimeWindow]:
        return [w for w in (self.time_in, self.time_out) if w is not None]


class SessionWindowsOut(BaseModel):
    status: SessionStatus
    windows: SessionTimeWindows


# ---------------------------
# Políticas
# ---------------------------

class ScanPolicy(BaseModel):
    allow_early: bool = True
    early_grace_minutes: int = Field(15, ge=0)
    allow_late: bool = True
    late_grace_minutes: int = Field(30, ge=0)

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "ScanPolicy":
        return cls(
            allow_early=s.SCAN_ALLOW_EARLY,
            early_grace_minutes=s.SCAN_EARLY_GRACE_MINUTES,
            allow_late=s.SCAN_ALLOW_LATE,
            late_grace_minutes=s.SCAN_LATE_GRACE_MINUTES,
        )


class DuplicateCheckConfig(BaseModel):
    min_time_between_scans: int = Field(1, ge=0)
    allow_multiple_time_in: bool = False
    allow_multiple_time_out: bool = False
    max_scans_per_session: int = Field(2, ge=1)
    duplicate_time_window_minutes: int = Field(5, ge=0)
    check_across_sessions: bool = True

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "DuplicateCheckConfig":
        return cls(
            min_time_between_scans=s.DUPLICATE_MIN_MINUTES_BETWEEN_SCANS,
            allow_multiple_time_in=s.DUPLICATE_ALLOW_MULTIPLE_TIME_IN,
            allow_multiple_time_out=s.DUPLICATE_ALLOW_MULTIPLE_TIME_OUT,
            max_scans_per_session=s.DUPLICATE_MAX_SCANS_PER_SESSION,
            duplicate_time_window_minutes=s.DUPLICATE_WINDOW_MINUTES,
            check_across_sessions=s.DUPLICATE_CHECK_ACROSS_SESSIONS,
        )

    def allows_multiple(self, kind: ScanKind) -> bool:
        if kind is ScanKind.time_in:
            return self.allow_multiple_time_in
        return self.allow_multiple_time_out


# ---------------------------
# Decisões e resultados
# ---------------------------

class ScanType(BaseModel):
    type: ScanAction
    reason: Optional[WindowReason] = None
    message: str
    is_allowed: bool
    window: Optional[TimeWindow] = None
    minutes_offset: Optional[int] = None
    current_time: UtcDatetime


class AttendanceRecordRead(BaseModel):
    id: str
    student_id: str
    session_id: str
    event_id: str
    scan_type: ScanKind
    timestamp: UtcDatetime
    organizer_id: Optional[str] = None

    model_config = {"frozen": True}


class LastScan(BaseModel):
    id: str
    scan_type: ScanKind
    timestamp: UtcDatetime
    session_id: Optional[str] = None


class DuplicateCheckResult(BaseModel):
    is_duplicate: bool
    reason: DuplicateReason
    message: str
    last_scan: Optional[LastScan] = None
    total_scans: int = 0
    time_since_last_scan_minutes: int = 0
    error: Optional[str] = None


class SequenceCheck(BaseModel):
    is_valid: bool
    reason: str
    message: str


class ScanResultMetadata(BaseModel):
    timestamp: UtcDatetime
    stages: List[str] = Field(default_factory=list)
    qr_kind: Optional[str] = None
    total_scans: int = 0
    event_scans: Optional[int] = None
    processing_ms: float = 0.0
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ScanProcessingResult(BaseModel):
    success: bool
    scan_type: ScanOutcome
    reason: str
    message: str
    timestamp: UtcDatetime
    student_id: Optional[str] = None
    session_id: Optional[str] = None
    event_id: Optional[str] = None
    decision: Optional[ScanType] = None
    duplicate_check: Optional[DuplicateCheckResult] = None
    metadata: ScanResultMetadata


# ---------------------------
# Request / response HTTP
# ---------------------------

class ScanRequest(BaseModel):
    qr_data: str = Field(..., min_length=1)
    organizer_id: str = Field(..., min_length=1)
    session_id: Optional[str] = None
    event_id: Optional[str] = None
    student_id: Optional[str] = None
    scan_type: Optional[ScanKind] = None   # ausente = inferido pela janela


class SessionScanStats(BaseModel):
    session_id: Optional[str] = None
    total_scans: int = 0
    time_in_scans: int = 0
    time_out_scans: int = 0
    unique_students: int = 0
    incomplete_students: int = 0   # só time-in ou só time-out


class ScanResponse(ScanProcessingResult):
    attendance_id: Optional[str] = None   # preenchido quando a leitura foi gravada
