import secrets
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session
from app.crud.base import CRUDBase, parse_ref
from app.models.event_session import EventSession
from app.schemas.event_session import EventSessionBase, EventSessionCreate, EventSessionUpdate
from app.schemas.scan import SessionContext, WindowConfig


def _window(start, end) -> Optional[WindowConfig]:
    if start is None or end is None:
        return None
    return WindowConfig(start=start, end=end)


def new_qr_seed() -> str:
    return secrets.token_hex(16)


class CRUDEventSession(CRUDBase[EventSession, EventSessionCreate, EventSessionUpdate]):
    def get_by_ref(self, db: Session, ref: str) -> Optional[EventSession]:
        pk = parse_ref(ref)
        return self.get(db, pk) if pk is not None else None

    def list_for_event(self, db: Session, event_id: int) -> List[EventSession]:
        stmt = select(EventSession).where(EventSession.event_id == event_id).order_by(EventSession.start_at)
        return list(db.scalars(stmt).all())

    def create_for_event(self, db: Session, event_id: int, obj_in: EventSessionCreate) -> EventSession:
        return self.create(db, obj_in, extra={"event_id": event_id, "qr_seed": new_qr_seed()})

    def update_session(self, db: Session, db_obj: EventSession, obj_in: EventSessionUpdate) -> EventSession:
        data = obj_in.model_dump(exclude_unset=True)
        rotate = data.pop("rotate_qr_seed", False)

        # valida o estado final (janelas e ordem) antes de gravar
        merged = {f: getattr(db_obj, f) for f in EventSessionBase.model_fields}
        merged.update(data)
        EventSessionBase.model_validate(merged)

        if rotate:
            data["qr_seed"] = new_qr_seed()
        return self.update(db, db_obj, data)

    def to_context(self, s: EventSession) -> SessionContext:
        event_active = s.event.is_active if s.event is not None else True
        return SessionContext(
            id=str(s.id),
            event_id=str(s.event_id),
            name=s.name,
            start_time=s.start_at,
            end_time=s.end_at,
            is_active=bool(s.is_active and event_active),
            time_in_window=_window(s.time_in_start, s.time_in_end),
            time_out_window=_window(s.time_out_start, s.time_out_end),
            qr_seed=s.qr_seed,
        )

    def get_context(self, db: Session, ref: str) -> Optional[SessionContext]:
        s = self.get_by_ref(db, ref)
        return self.to_context(s) if s is not None else None

event_session_crud = CRUDEventSession(EventSession)
