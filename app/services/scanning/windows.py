# app/services/scanning/windows.py
from __future__ import annotations

import datetime as dt
from typing import Optional

from app.core.clock import ensure_utc
from app.schemas.scan import (
    ScanKind,
    SessionContext,
    SessionStatus,
    SessionTimeWindows,
    TimeWindow,
    WindowConfig,
)

_MINUTE = dt.timedelta(minutes=1)


def minutes_between(later: dt.datetime, earlier: dt.datetime) -> int:
    """Minutos inteiros entre dois instantes (arredonda para baixo)."""
    return (later - earlier) // _MINUTE


def _build_window(cfg: Optional[WindowConfig], kind: ScanKind, now: dt.datetime) -> Optional[TimeWindow]:
    if cfg is None:
        return None
    active = cfg.start <= now <= cfg.end
    return TimeWindow(
        start=cfg.start,
        end=cfg.end,
        kind=kind,
        is_active=active,
        minutes_until_start=minutes_between(cfg.start, now) if now < cfg.start else None,
        minutes_since_end=minutes_between(now, cfg.end) if now > cfg.end else None,
        time_remaining_minutes=max(0, minutes_between(cfg.end, now)) if active else 0,
    )


def resolve_windows(session: SessionContext, now: dt.datetime) -> SessionTimeWindows:
    # função pura: mesmo (session, now) -> mesmas janelas
    now = ensure_utc(now)
    return SessionTimeWindows(
        session_id=session.id,
        session_start=session.start_time,
        session_end=session.end_time,
        session_active=session.is_active and session.start_time <= now <= session.end_time,
        time_in=_build_window(session.time_in_window, ScanKind.time_in, now),
        time_out=_build_window(session.time_out_window, ScanKind.time_out, now),
    )


def session_status(session: SessionContext, now: dt.datetime) -> SessionStatus:
    now = ensure_utc(now)
    if not session.is_active:
        return SessionStatus.inactive
    if now < session.start_time:
        return SessionStatus.upcoming
    if now > session.end_time:
        return SessionStatus.ended
    windows = resolve_windows(session, now)
    if windows.time_in is not None and windows.time_in.is_active:
        return SessionStatus.active_time_in
    if windows.time_out is not None and windows.time_out.is_active:
        return SessionStatus.active_time_out
    return SessionStatus.between_windows
