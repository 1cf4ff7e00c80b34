from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import ForeignKey, String, DateTime, Boolean
from app.db.base_class import Base

class EventSession(Base):
    """Sessão de um evento, com janelas opcionais de time-in e time-out."""
    __tablename__ = "event_sessions"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(160))
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    # janelas (ambas opcionais)
    time_in_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    time_in_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    time_out_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    time_out_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    qr_seed: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    event = relationship("Event", back_populates="sessions")

    @property
    def has_qr_seed(self) -> bool:
        return bool(self.qr_seed)
