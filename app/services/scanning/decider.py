# app/services/scanning/decider.py
"""
Decide se uma leitura é time-in, time-out ou rejeitada.

Ordem de avaliação:
  sessão (inexistente, inativa, não iniciada, encerrada) ->
  janela de time-in (dentro, antecipado, atrasado) ->
  janela de time-out (idem) -> invalid_time.
"""
from __future__ import annotations

import datetime as dt
from typing import Optional

from app.core.clock import ensure_utc
from app.schemas.scan import (
    ScanAction,
    ScanKind,
    ScanPolicy,
    ScanType,
    SessionContext,
    SessionTimeWindows,
    TimeWindow,
    WindowReason,
)
from app.services.scanning.windows import minutes_between, resolve_windows

_LABELS = {
    ScanKind.time_in: "time-in",
    ScanKind.time_out: "time-out",
}


def _rejected(action: ScanAction, message: str, now: dt.datetime) -> ScanType:
    return ScanType(type=action, message=message, is_allowed=False, current_time=now)


def _accepted(window: TimeWindow, reason: WindowReason, message: str, now: dt.datetime,
              offset: Optional[int] = None) -> ScanType:
    return ScanType(
        type=ScanAction(window.kind.value),
        reason=reason,
        message=message,
        is_allowed=True,
        window=window,
        minutes_offset=offset,
        current_time=now,
    )


def _match_window(window: TimeWindow, now: dt.datetime, policy: ScanPolicy) -> Optional[ScanType]:
    label = _LABELS[window.kind]
    if window.start <= now <= window.end:
        return _accepted(window, WindowReason.within_window, f"Within {label} window", now)

    # tolerância: distância exata <= grace; minutos reportados arredondados para baixo
    if policy.allow_early and now < window.start:
        if window.start - now <= dt.timedelta(minutes=policy.early_grace_minutes):
            early = minutes_between(window.start, now)
            return _accepted(window, WindowReason.early,
                             f"Early {label} scan ({early} minutes early)", now, early)

    if policy.allow_late and now > window.end:
        if now - window.end <= dt.timedelta(minutes=policy.late_grace_minutes):
            late = minutes_between(now, window.end)
            return _accepted(window, WindowReason.late,
                             f"Late {label} scan ({late} minutes late)", now, late)
    return None


def is_within_acceptable_time_range(now: dt.datetime, window: TimeWindow, policy: Optional[ScanPolicy] = None) -> bool:
    return _match_window(window, ensure_utc(now), policy or ScanPolicy()) is not None


def determine_time_in_or_out(
    windows: SessionTimeWindows,
    now: dt.datetime,
    policy: Optional[ScanPolicy] = None,
    requested: Optional[ScanKind] = None,
) -> ScanType:
    policy = policy or ScanPolicy()
    now = ensure_utc(now)
    requested = ScanKind(requested) if requested is not None else None

    candidates = [windows.time_in, windows.time_out]
    if requested is not None:
        # tipo pedido explicitamente: só a janela correspondente vale
        candidates = [w for w in candidates if w is not None and w.kind == requested]

    for window in candidates:
        if window is None:
            continue
        decision = _match_window(window, now, policy)
        if decision is not None:
            return decision

    if requested is not None:
        return _rejected(ScanAction.invalid_time,
                         f"Current time is not within the {_LABELS[requested]} window", now)
    return _rejected(ScanAction.invalid_time, "Current time is not within any valid scan window", now)


def decide_scan_type(
    session: Optional[SessionContext],
    now: dt.datetime,
    policy: Optional[ScanPolicy] = None,
    requested: Optional[ScanKind] = None,
) -> ScanType:
    now = ensure_utc(now)
    if session is None:
        return _rejected(ScanAction.session_not_found, "Session not found or invalid", now)
    if not session.is_active:
        return _rejected(ScanAction.session_not_active, "Session is not currently active", now)
    if now < session.start_time:
        return _rejected(ScanAction.session_not_started, "Session has not started yet", now)
    if now > session.end_time:
        return _rejected(ScanAction.session_ended, "Session has already ended", now)

    return determine_time_in_or_out(resolve_windows(session, now), now, policy, requested)


_DESCRIPTIONS = {
    ScanAction.time_in: "Time-In",
    ScanAction.time_out: "Time-Out",
    ScanAction.invalid_time: "Invalid Time",
    ScanAction.session_not_active: "Session Not Active",
    ScanAction.session_ended: "Session Ended",
    ScanAction.session_not_started: "Session Not Started",
    ScanAction.session_not_found: "Session Not Found",
    ScanAction.student_not_found: "Student Not Found",
    ScanAction.invalid_qr_code: "Invalid QR Code",
    ScanAction.duplicate_scan: "Duplicate Scan",
}


def describe_scan_type(scan_type: ScanType) -> str:
    return f"{_DESCRIPTIONS.get(scan_type.type, 'Unknown')}: {scan_type.message}"
