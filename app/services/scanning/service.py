# app/services/scanning/service.py
"""
Integra o pipeline de leitura com o banco: resolve a sessão, confere o token
rotativo e o aluno, roda ``process`` com o histórico do banco e grava a
presença quando a leitura é aceita.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import ensure_utc
from app.core.config import settings
from app.crud.attendance import attendance_crud
from app.crud.event_session import event_session_crud
from app.crud.student import student_crud
from app.schemas.qr import SessionMarker
from app.schemas.scan import (
    DuplicateCheckConfig,
    ScanAction,
    ScanKind,
    ScanPolicy,
    ScanProcessingResult,
    ScanResponse,
)
from app.services.qr import parse_qr, validate_qr_token
from app.services.scanning.duplicates import HistoryLookup
from app.services.scanning.processor import build_rejection, extract_identity, process

logger = logging.getLogger(__name__)


def _response(result: ScanProcessingResult, attendance_id: Optional[int] = None) -> ScanResponse:
    return ScanResponse(
        **result.model_dump(),
        attendance_id=str(attendance_id) if attendance_id is not None else None,
    )


def _store_lookup(db: Session, fetch) -> HistoryLookup:
    """Leitura do histórico; em erro do banco desfaz a transação antes de repassar o erro."""
    def lookup(student: str, key: str):
        try:
            return fetch(db, student, key)
        except SQLAlchemyError:
            db.rollback()
            raise
    return lookup


def process_scan(
    db: Session,
    *,
    qr_data: str,
    organizer_id: str,
    now: dt.datetime,
    session_id: Optional[str] = None,
    event_id: Optional[str] = None,
    student_id: Optional[str] = None,
    scan_type: Optional[ScanKind] = None,
    policy: Optional[ScanPolicy] = None,
    config: Optional[DuplicateCheckConfig] = None,
) -> ScanResponse:
    now = ensure_utc(now)
    policy = policy or ScanPolicy.from_settings()
    config = config or DuplicateCheckConfig.from_settings()

    payload = parse_qr(qr_data)
    identity = extract_identity(payload, student_id) if payload.is_valid else None

    # sessão: a do request tem prioridade sobre a do QR
    session_ref = session_id or (identity.session_id if identity else None)
    context = event_session_crud.get_context(db, session_ref) if session_ref else None

    if context is not None and event_id and event_id != context.event_id:
        return _response(build_rejection(
            ScanAction.invalid_qr_code.value, "Session does not belong to this event", now,
            session_id=context.id, event_id=context.event_id,
        ))

    if (
        settings.QR_ENFORCE_ROTATION
        and context is not None
        and context.qr_seed
        and isinstance(payload, SessionMarker)
        and not validate_qr_token(context.qr_seed, payload.data, now)
    ):
        logger.info("scan rejeitado: token expirado session=%s organizer=%s", context.id, organizer_id)
        return _response(build_rejection(
            ScanAction.invalid_qr_code.value, "QR code has expired, scan the current code", now,
            session_id=context.id, event_id=context.event_id,
        ))

    if identity is not None and identity.student_id and student_crud.get_by_ref(db, identity.student_id) is None:
        logger.info("scan rejeitado: aluno %s não encontrado", identity.student_id)
        return _response(build_rejection(
            ScanAction.student_not_found.value, "Student not found", now,
            student_id=identity.student_id,
            session_id=context.id if context else None,
            event_id=context.event_id if context else None,
        ))

    result = process(
        qr_data,
        context,
        _store_lookup(db, attendance_crud.history_for_session),
        policy,
        config,
        now,
        student_id=student_id,
        requested_scan_type=scan_type,
        event_history=_store_lookup(db, attendance_crud.history_for_event),
    )
    if not result.success:
        logger.info("scan rejeitado: reason=%s student=%s session=%s organizer=%s",
                    result.reason, result.student_id, result.session_id, organizer_id)
        return _response(result)

    try:
        att = attendance_crud.record_scan(
            db,
            student_id=int(result.student_id),
            session_id=int(result.session_id),
            event_id=int(result.event_id),
            scan_type=ScanKind(result.scan_type.value),
            scanned_by=organizer_id,
            at=now,
        )
    except IntegrityError:
        # leitura concorrente já gravou (student, session, scan_type)
        db.rollback()
        logger.warning("conflito de unicidade ao gravar scan student=%s session=%s type=%s",
                       result.student_id, result.session_id, result.scan_type.value)
        return _response(build_rejection(
            ScanAction.duplicate_scan.value,
            f"A {result.scan_type.value} scan is already recorded for this session",
            now,
            student_id=result.student_id,
            session_id=result.session_id,
            event_id=result.event_id,
            decision=result.decision,
            duplicate_check=result.duplicate_check,
            metadata=result.metadata,
        ))

    logger.info("scan aceito: %s student=%s session=%s attendance=%s",
                result.scan_type.value, result.student_id, result.session_id, att.id)
    return _response(result, att.id)
