# app/services/qr.py
from __future__ import annotations

import base64
import datetime as dt
import hashlib
import hmac
import io
import json
import re
from typing import Any

import qrcode

from app.core.config import settings
from app.schemas.qr import (
    InvalidPayload,
    JsonPayload,
    QRPayload,
    SessionMarker,
    StudentMarker,
    TextPayload,
    UrlPayload,
)

MAX_QR_LENGTH = 10_000

# <marker>:session:... / <marker>:student:...
_MARKER_RE = re.compile(r"^(?P<system>[A-Za-z0-9_-]+):(?P<kind>session|student)(?::(?P<rest>.*))?$", re.DOTALL)


# ---------------------------
# Parser
# ---------------------------

def _parse_marker(system: str, kind: str, rest: str | None) -> QRPayload:
    parts = (rest or "").split(":")
    if kind == "session":
        if len(parts) < 2 or not parts[0] or not parts[1]:
            return InvalidPayload(reason="session marker requires session and event identifiers")
        return SessionMarker(
            system=system,
            session_id=parts[0],
            event_id=parts[1],
            data=":".join(parts[2:]),
        )
    if not parts[0]:
        return InvalidPayload(reason="student marker requires a student identifier")
    return StudentMarker(system=system, student_id=parts[0], data=":".join(parts[1:]))


def parse_qr(raw: Any) -> QRPayload:
    """
    Classifica o texto lido do QR. Nunca levanta exceção:
    entrada malformada vira ``InvalidPayload``.
    Ordem: marcador (session/student) -> URL -> JSON -> texto.
    """
    if not isinstance(raw, str):
        return InvalidPayload(reason="QR data must be a string")
    if len(raw) > MAX_QR_LENGTH:
        return InvalidPayload(reason=f"QR data exceeds {MAX_QR_LENGTH} characters")
    text = raw.strip()
    if not text:
        return InvalidPayload(reason="QR data is empty")

    m = _MARKER_RE.match(text)
    if m:
        return _parse_marker(m.group("system"), m.group("kind"), m.group("rest"))

    if text.startswith(("http://", "https://")):
        return UrlPayload(url=text)

    if text[0] in "{[":
        try:
            return JsonPayload(value=json.loads(text))
        except (ValueError, RecursionError):
            pass  # não é JSON válido (ou aninhado demais): cai para texto

    return TextPayload(text=text)


# ---------------------------
# Builders
# ---------------------------

def build_session_qr_text(session_id: str, event_id: str, extra: str = "", marker: str | None = None) -> str:
    text = f"{marker or settings.QR_MARKER}:session:{session_id}:{event_id}"
    return f"{text}:{extra}" if extra else text


def build_student_qr_text(student_id: str, extra: str = "", marker: str | None = None) -> str:
    text = f"{marker or settings.QR_MARKER}:student:{student_id}"
    return f"{text}:{extra}" if extra else text


def qr_data_uri(text: str) -> str:
    img = qrcode.make(text)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    b64 = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{b64}"


# ---------------------------
# Token rotativo
# ---------------------------

def _window(now: dt.datetime, rotation_seconds: int) -> int:
    return int(now.timestamp() // rotation_seconds)


def _sign(qr_seed: str, window: int) -> str:
    msg = f"{qr_seed}:{window}".encode()
    return hmac.new(key=qr_seed.encode(), msg=msg, digestmod=hashlib.sha256).hexdigest()[:32]


def build_qr_token(qr_seed: str, now: dt.datetime, rotation_seconds: int | None = None) -> str:
    # nonce rotativo por janela de N segundos
    return _sign(qr_seed, _window(now, rotation_seconds or settings.QR_ROTATION_SECONDS))


def validate_qr_token(
    qr_seed: str,
    token: str,
    now: dt.datetime,
    skew_windows: int = 1,
    rotation_seconds: int | None = None,
) -> bool:
    # tolerância de clock skew: ±skew_windows janelas
    current = _window(now, rotation_seconds or settings.QR_ROTATION_SECONDS)
    for w in range(current - skew_windows, current + skew_windows + 1):
        if hmac.compare_digest(_sign(qr_seed, w), token):
            return True
    return False
