# app/api/v1/events.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pydantic import ValidationError

from app.api.deps import get_db, get_now
from app.core.config import settings
from app.crud.event import event_crud
from app.crud.event_session import event_session_crud
from app.models.event import Event as EventModel
from app.models.event_session import EventSession as SessionModel
from app.schemas.event import Event, EventCreate, EventUpdate
from app.schemas.event_session import EventSession, EventSessionCreate, EventSessionUpdate
from app.schemas.qr import QRCodeOut
from app.services.qr import build_qr_token, build_session_qr_text, qr_data_uri

router = APIRouter()


def _get_event(db: Session, event_id: int) -> EventModel:
    e = event_crud.get(db, event_id)
    if not e:
        raise HTTPException(status_code=404, detail="Event not found")
    return e

def _get_session(db: Session, event_id: int, session_id: int) -> SessionModel:
    s = event_session_crud.get(db, session_id)
    if not s or s.event_id != event_id:
        raise HTTPException(status_code=404, detail="Session not found")
    return s

# ---------------------------
# Eventos
# ---------------------------

@router.get("/", response_model=List[Event])
def list_events(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return event_crud.get_multi(db, skip=skip, limit=limit)

@router.post("/", response_model=Event, status_code=status.HTTP_201_CREATED)
def create_event(body: EventCreate, db: Session = Depends(get_db)):
    return event_crud.create(db, body)

@router.get("/{event_id}", response_model=Event)
def get_event(event_id: int, db: Session = Depends(get_db)):
    return _get_event(db, event_id)

@router.put("/{event_id}", response_model=Event)
def update_event(event_id: int, body: EventUpdate, db: Session = Depends(get_db)):
    e = _get_event(db, event_id)
    data = body.model_dump(exclude_unset=True)
    if not data:
        raise HTTPException(status_code=400, detail="No valid fields to update")
    # valida o estado final (ordem das datas) antes de gravar
    merged = {f: getattr(e, f) for f in EventCreate.model_fields}
    merged.update(data)
    try:
        EventCreate.model_validate(merged)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=[err["msg"] for err in exc.errors()])
    return event_crud.update(db, e, data)

@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(event_id: int, db: Session = Depends(get_db)):
    _get_event(db, event_id)
    event_crud.remove(db, event_id)
    return None

# ---------------------------
# Sessões
# ---------------------------

@router.get("/{event_id}/sessions", response_model=List[EventSession])
def list_sessions(event_id: int, db: Session = Depends(get_db)):
    _get_event(db, event_id)
    return event_session_crud.list_for_event(db, event_id)

@router.post("/{event_id}/sessions", response_model=EventSession, status_code=status.HTTP_201_CREATED)
def add_session(event_id: int, body: EventSessionCreate, db: Session = Depends(get_db)):
    _get_event(db, event_id)
    return event_session_crud.create_for_event(db, event_id, body)

@router.put("/{event_id}/sessions/{session_id}", response_model=EventSession)
def update_session(event_id: int, session_id: int, body: EventSessionUpdate, db: Session = Depends(get_db)):
    s = _get_session(db, event_id, session_id)
    try:
        return event_session_crud.update_session(db, s, body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=[err["msg"] for err in exc.errors()])

@router.delete("/{event_id}/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(event_id: int, session_id: int, db: Session = Depends(get_db)):
    _get_session(db, event_id, session_id)
    event_session_crud.remove(db, session_id)
    return None

@router.get("/{event_id}/sessions/{session_id}/qr", response_model=QRCodeOut)
def session_qr(event_id: int, session_id: int, db: Session = Depends(get_db), now=Depends(get_now)):
    s = _get_session(db, event_id, session_id)
    # com rotação ligada o sufixo é o token da janela atual
    extra = build_qr_token(s.qr_seed, now) if (settings.QR_ENFORCE_ROTATION and s.qr_seed) else ""
    text = build_session_qr_text(str(s.id), str(s.event_id), extra)
    return QRCodeOut(qr_text=text, image_data_uri=qr_data_uri(text))
