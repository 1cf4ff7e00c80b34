# app/services/scanning/processor.py
"""
Pipeline de uma leitura:
  parse -> identificação do aluno -> decisão de janela ->
  guarda da sessão -> guarda entre sessões do evento (opcional).

Só é sucesso se a decisão de janela e todas as guardas aceitarem.
"""
from __future__ import annotations

import datetime as dt
import time
from typing import Any, List, NamedTuple, Optional, Sequence, Union

from app.core.clock import ensure_utc
from app.schemas.qr import JsonPayload, QRPayload, SessionMarker, StudentMarker
from app.schemas.scan import (
    AttendanceRecordRead,
    DuplicateCheckConfig,
    DuplicateCheckResult,
    DuplicateReason,
    ScanAction,
    ScanKind,
    ScanOutcome,
    ScanPolicy,
    ScanProcessingResult,
    ScanResultMetadata,
    ScanType,
    SessionContext,
)
from app.services.qr import parse_qr
from app.services.scanning.decider import decide_scan_type
from app.services.scanning.duplicates import (
    HistoryLookup,
    check_duplicate_across_sessions_guarded,
    check_duplicate_guarded,
)

HistorySource = Union[Sequence[AttendanceRecordRead], HistoryLookup]

JSON_SESSION_TYPE = "session_attendance"
JSON_STUDENT_TYPE = "student_attendance"


class ScanIdentity(NamedTuple):
    session_id: Optional[str]
    event_id: Optional[str]
    student_id: Optional[str]


def _json_field(value: dict, *names: str) -> Optional[str]:
    for name in names:
        v = value.get(name)
        if v not in (None, ""):
            return str(v)
    return None


def extract_identity(payload: QRPayload, student_id: Optional[str] = None) -> Optional[ScanIdentity]:
    """
    Extrai (sessão, evento, aluno) de um QR de presença.
    Retorna None quando o QR não é um código de presença.
    """
    if isinstance(payload, SessionMarker):
        return ScanIdentity(payload.session_id, payload.event_id, student_id)
    if isinstance(payload, StudentMarker):
        return ScanIdentity(None, None, payload.student_id)
    if isinstance(payload, JsonPayload) and isinstance(payload.value, dict):
        kind = payload.value.get("type")
        if kind == JSON_SESSION_TYPE:
            return ScanIdentity(
                _json_field(payload.value, "session_id", "sessionId"),
                _json_field(payload.value, "event_id", "eventId"),
                _json_field(payload.value, "student_id", "studentId") or student_id,
            )
        if kind == JSON_STUDENT_TYPE:
            sid = _json_field(payload.value, "student_id", "studentId")
            if sid:
                return ScanIdentity(None, None, sid)
    return None


def _as_lookup(source: Optional[HistorySource]) -> HistoryLookup:
    if source is None:
        return lambda _student, _key: []
    if callable(source):
        return source
    records = list(source)
    return lambda _student, _key: records


def build_rejection(
    reason: str,
    message: str,
    now: dt.datetime,
    *,
    student_id: Optional[str] = None,
    session_id: Optional[str] = None,
    event_id: Optional[str] = None,
    decision: Optional[ScanType] = None,
    duplicate_check: Optional[DuplicateCheckResult] = None,
    metadata: Optional[ScanResultMetadata] = None,
) -> ScanProcessingResult:
    now = ensure_utc(now)
    return ScanProcessingResult(
        success=False,
        scan_type=ScanOutcome.rejected,
        reason=reason,
        message=message,
        timestamp=now,
        student_id=student_id,
        session_id=session_id,
        event_id=event_id,
        decision=decision,
        duplicate_check=duplicate_check,
        metadata=metadata or ScanResultMetadata(timestamp=now),
    )


def process(
    qr_text: Any,
    session: Optional[SessionContext],
    history: Optional[HistorySource],
    policy: Optional[ScanPolicy],
    config: Optional[DuplicateCheckConfig],
    now: dt.datetime,
    *,
    student_id: Optional[str] = None,
    requested_scan_type: Optional[ScanKind] = None,
    event_history: Optional[HistorySource] = None,
) -> ScanProcessingResult:
    started = time.perf_counter()
    now = ensure_utc(now)
    config = config or DuplicateCheckConfig()
    stages: List[str] = []
    errors: List[str] = []
    warnings: List[str] = []
    meta = dict(timestamp=now, stages=stages, errors=errors, warnings=warnings)

    def _meta(**extra) -> ScanResultMetadata:
        return ScanResultMetadata(
            processing_ms=(time.perf_counter() - started) * 1000, **meta, **extra
        )

    session_id = session.id if session is not None else None
    event_id = session.event_id if session is not None else None

    # 1) parse
    stages.append("parse")
    payload = parse_qr(qr_text)
    meta["qr_kind"] = payload.kind
    if not payload.is_valid:
        return build_rejection(ScanAction.invalid_qr_code.value, payload.reason, now,
                               session_id=session_id, event_id=event_id, metadata=_meta())

    # 2) identificação
    stages.append("identify")
    identity = extract_identity(payload, student_id)
    if identity is None:
        return build_rejection(ScanAction.invalid_qr_code.value,
                               "QR code is not a recognized attendance code", now,
                               session_id=session_id, event_id=event_id, metadata=_meta())
    if session is not None and identity.session_id and identity.session_id != session.id:
        return build_rejection(ScanAction.invalid_qr_code.value,
                               "QR code does not belong to this session", now,
                               session_id=session_id, event_id=event_id, metadata=_meta())
    student = identity.student_id
    if not student:
        return build_rejection(ScanAction.student_not_found.value,
                               "No student could be identified for this scan", now,
                               session_id=session_id, event_id=event_id, metadata=_meta())

    # 3) janela
    stages.append("decide")
    decision = decide_scan_type(session, now, policy, requested_scan_type)
    if not decision.is_allowed:
        return build_rejection(decision.type.value, decision.message, now,
                               student_id=student, session_id=session_id, event_id=event_id,
                               decision=decision, metadata=_meta())
    kind = ScanKind(decision.type.value)

    # 4) duplicidade na sessão
    stages.append("duplicate_check")
    dup = check_duplicate_guarded(_as_lookup(history), student, session.id, kind, config, now)
    if dup.reason is DuplicateReason.error:
        errors.append(dup.error or dup.message)
    elif dup.is_duplicate:
        return build_rejection(dup.reason.value, dup.message, now,
                               student_id=student, session_id=session_id, event_id=event_id,
                               decision=decision, duplicate_check=dup,
                               metadata=_meta(total_scans=dup.total_scans))

    # 5) duplicidade entre sessões do evento
    event_scans = None
    if config.check_across_sessions:
        if event_history is None:
            warnings.append("cross-session check skipped: no event history")
        else:
            stages.append("cross_session_check")
            cross = check_duplicate_across_sessions_guarded(
                _as_lookup(event_history), student, session.event_id, config, now)
            event_scans = cross.total_scans
            if cross.reason is DuplicateReason.error:
                errors.append(cross.error or cross.message)
            elif cross.is_duplicate:
                return build_rejection(cross.reason.value, cross.message, now,
                                       student_id=student, session_id=session_id, event_id=event_id,
                                       decision=decision, duplicate_check=cross,
                                       metadata=_meta(total_scans=dup.total_scans,
                                                      event_scans=event_scans))

    stages.append("accepted")
    return ScanProcessingResult(
        success=True,
        scan_type=ScanOutcome(kind.value),
        reason=decision.reason.value,
        message=f"Successfully processed {kind.value} scan",
        timestamp=now,
        student_id=student,
        session_id=session_id,
        event_id=event_id,
        decision=decision,
        duplicate_check=dup,
        metadata=_meta(total_scans=dup.total_scans, event_scans=event_scans),
    )
