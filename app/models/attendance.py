from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import ForeignKey, UniqueConstraint, DateTime, String

from app.db.base_class import Base

class Attendance(Base):
    __tablename__ = "attendances"
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), index=True)
    session_id: Mapped[int] = mapped_column(ForeignKey("event_sessions.id", ondelete="CASCADE"), index=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), index=True)
    scan_type: Mapped[str] = mapped_column(String(10))
    scanned_by: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)   # id do organizador
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    student = relationship("Student")
    session = relationship("EventSession")

    # backstop real de unicidade (a guarda de duplicidade é só UX)
    __table_args__ = (
        UniqueConstraint("student_id", "session_id", "scan_type", name="uq_attendance_student_session_type"),
    )
