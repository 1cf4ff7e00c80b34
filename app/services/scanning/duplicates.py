# app/services/scanning/duplicates.py
"""
Guarda de duplicidade/sequência.

Regras para (aluno, sessão), primeira que casar vence:
  1. total de leituras >= max_scans_per_session      -> max_scans_reached
  2. mesma leitura (tipo) há menos de min_time_between -> too_soon
  3. mesma leitura e repetição desabilitada          -> multiple_<tipo>_not_allowed
  4. qualquer leitura dentro da janela de duplicidade -> within_duplicate_window
  5. time_out sem time_in anterior                   -> time_out_without_time_in
  6. caso contrário                                  -> no_duplicate

A guarda é só um atalho de UX: a unicidade real é a constraint
(student_id, session_id, scan_type) no banco.
"""
from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from typing import Callable, Iterable, List, Optional, Sequence

from app.core.clock import ensure_utc
from app.schemas.scan import (
    AttendanceRecordRead,
    DuplicateCheckConfig,
    DuplicateCheckResult,
    DuplicateReason,
    LastScan,
    ScanKind,
    SequenceCheck,
    SessionScanStats,
)
from app.services.scanning.windows import minutes_between

logger = logging.getLogger(__name__)

# (student_id, session_id | event_id) -> registros
HistoryLookup = Callable[[str, str], Sequence[AttendanceRecordRead]]


def _newest_first(records: Iterable[AttendanceRecordRead]) -> List[AttendanceRecordRead]:
    return sorted(records, key=lambda r: ensure_utc(r.timestamp), reverse=True)


def _last_scan(record: Optional[AttendanceRecordRead]) -> Optional[LastScan]:
    if record is None:
        return None
    return LastScan(id=record.id, scan_type=record.scan_type,
                    timestamp=record.timestamp, session_id=record.session_id)


def _age(record: Optional[AttendanceRecordRead], now: dt.datetime) -> int:
    if record is None:
        return 0
    return minutes_between(now, ensure_utc(record.timestamp))


def _result(
    reason: DuplicateReason,
    message: str,
    records: List[AttendanceRecordRead],
    now: dt.datetime,
    focus: Optional[AttendanceRecordRead] = None,
) -> DuplicateCheckResult:
    focus = focus if focus is not None else (records[0] if records else None)
    return DuplicateCheckResult(
        is_duplicate=reason is not DuplicateReason.no_duplicate,
        reason=reason,
        message=message,
        last_scan=_last_scan(focus),
        total_scans=len(records),
        time_since_last_scan_minutes=_age(focus, now),
    )


def check_duplicate(
    student_id: str,
    session_id: str,
    scan_type: ScanKind,
    history: Iterable[AttendanceRecordRead],
    config: Optional[DuplicateCheckConfig],
    now: dt.datetime,
) -> DuplicateCheckResult:
    config = config or DuplicateCheckConfig()
    now = ensure_utc(now)
    scan_type = ScanKind(scan_type)
    records = _newest_first(
        r for r in history if r.student_id == student_id and r.session_id == session_id
    )

    if len(records) >= config.max_scans_per_session:
        return _result(
            DuplicateReason.max_scans_reached,
            f"Student has already reached the maximum number of scans "
            f"({config.max_scans_per_session}) for this session",
            records, now,
        )

    same_type = next((r for r in records if r.scan_type == scan_type), None)
    if same_type is not None:
        since = _age(same_type, now)
        if since < config.min_time_between_scans:
            return _result(
                DuplicateReason.too_soon,
                f"Please wait at least {config.min_time_between_scans} minute(s) between scans. "
                f"Last {scan_type.value} scan was {since} minute(s) ago",
                records, now, same_type,
            )
        if not config.allows_multiple(scan_type):
            if scan_type is ScanKind.time_in:
                return _result(DuplicateReason.multiple_time_in_not_allowed,
                               "Only one time-in scan is allowed per session",
                               records, now, same_type)
            return _result(DuplicateReason.multiple_time_out_not_allowed,
                           "Only one time-out scan is allowed per session",
                           records, now, same_type)

    recent = next((r for r in records if _age(r, now) <= config.duplicate_time_window_minutes), None)
    if recent is not None:
        return _result(
            DuplicateReason.within_duplicate_window,
            f"A scan was performed {_age(recent, now)} minute(s) ago. "
            f"Please wait at least {config.duplicate_time_window_minutes} minutes between scans",
            records, now, recent,
        )

    if scan_type is ScanKind.time_out and not any(r.scan_type == ScanKind.time_in for r in records):
        return _result(DuplicateReason.time_out_without_time_in,
                       "Cannot scan time-out without first scanning time-in",
                       records, now)

    return _result(DuplicateReason.no_duplicate, "No duplicate scan detected", records, now)


def check_duplicate_across_sessions(
    student_id: str,
    event_id: str,
    history: Iterable[AttendanceRecordRead],
    config: Optional[DuplicateCheckConfig],
    now: dt.datetime,
) -> DuplicateCheckResult:
    config = config or DuplicateCheckConfig()
    now = ensure_utc(now)
    records = _newest_first(
        r for r in history if r.student_id == student_id and r.event_id == event_id
    )

    recent = next((r for r in records if _age(r, now) <= config.duplicate_time_window_minutes), None)
    if recent is not None:
        return _result(
            DuplicateReason.cross_session_duplicate,
            f"A {recent.scan_type.value} scan was performed {_age(recent, now)} minute(s) ago "
            f"in session {recent.session_id}. "
            f"Please wait at least {config.duplicate_time_window_minutes} minutes between scans",
            records, now, recent,
        )
    return _result(DuplicateReason.no_duplicate, "No duplicate scan detected across sessions", records, now)


# ---------------------------
# Variantes com lookup (fail-open)
# ---------------------------

def _fail_open(message: str, exc: Exception) -> DuplicateCheckResult:
    return DuplicateCheckResult(
        is_duplicate=False,
        reason=DuplicateReason.error,
        message=message,
        error=str(exc) or exc.__class__.__name__,
    )


def check_duplicate_guarded(
    lookup: HistoryLookup,
    student_id: str,
    session_id: str,
    scan_type: ScanKind,
    config: Optional[DuplicateCheckConfig],
    now: dt.datetime,
) -> DuplicateCheckResult:
    # falha no storage não pode bloquear a presença: libera e registra
    try:
        history = list(lookup(student_id, session_id))
    except Exception as exc:
        logger.warning("duplicate check lookup failed student=%s session=%s",
                       student_id, session_id, exc_info=True)
        return _fail_open("Error occurred while checking for duplicates. Proceeding with scan.", exc)
    return check_duplicate(student_id, session_id, scan_type, history, config, now)


def check_duplicate_across_sessions_guarded(
    lookup: HistoryLookup,
    student_id: str,
    event_id: str,
    config: Optional[DuplicateCheckConfig],
    now: dt.datetime,
) -> DuplicateCheckResult:
    try:
        history = list(lookup(student_id, event_id))
    except Exception as exc:
        logger.warning("cross-session lookup failed student=%s event=%s",
                       student_id, event_id, exc_info=True)
        return _fail_open(
            "Error occurred while checking for duplicates across sessions. Proceeding with scan.", exc)
    return check_duplicate_across_sessions(student_id, event_id, history, config, now)


# ---------------------------
# Sequência e estatísticas
# ---------------------------

def validate_scan_sequence(
    student_id: str,
    session_id: str,
    scan_type: ScanKind,
    history: Iterable[AttendanceRecordRead],
) -> SequenceCheck:
    scan_type = ScanKind(scan_type)
    kinds = {r.scan_type for r in history if r.student_id == student_id and r.session_id == session_id}

    if scan_type is ScanKind.time_out and ScanKind.time_in not in kinds:
        return SequenceCheck(is_valid=False, reason="no_time_in",
                             message="Cannot scan time-out without first scanning time-in")
    if scan_type is ScanKind.time_in and ScanKind.time_in in kinds:
        return SequenceCheck(is_valid=False, reason="already_time_in",
                             message="Time-in has already been scanned for this session")
    if scan_type is ScanKind.time_out and ScanKind.time_out in kinds:
        return SequenceCheck(is_valid=False, reason="already_time_out",
                             message="Time-out has already been scanned for this session")
    return SequenceCheck(is_valid=True, reason="valid_sequence", message="Scan sequence is valid")


def summarize_session_scans(
    records: Iterable[AttendanceRecordRead],
    session_id: Optional[str] = None,
) -> SessionScanStats:
    per_student = defaultdict(set)
    total = time_in = time_out = 0
    for r in records:
        if session_id is not None and r.session_id != session_id:
            continue
        total += 1
        if r.scan_type == ScanKind.time_in:
            time_in += 1
        else:
            time_out += 1
        per_student[r.student_id].add(r.scan_type)

    return SessionScanStats(
        session_id=session_id,
        total_scans=total,
        time_in_scans=time_in,
        time_out_scans=time_out,
        unique_students=len(per_student),
        incomplete_students=sum(1 for kinds in per_student.values() if len(kinds) == 1),
    )
