from pydantic import BaseModel, field_validator
from typing import Optional
from app.core.clock import UtcDatetime

# ---------------------------
# Event Schemas
# ---------------------------

class EventBase(BaseModel):
    title: str
    description: Optional[str] = None
    venue: Optional[str] = None
    start_at: Optional[UtcDatetime] = None
    end_at: Optional[UtcDatetime] = None
    status: str = "draft"
    is_active: bool = True

    @field_validator("end_at")
    @classmethod
    def _check_order(cls, v, info):
        start = info.data.get("start_at")
        if start is not None and v is not None and v < start:
            raise ValueError("end_at deve ser maior ou igual a start_at")
        return v

class EventCreate(EventBase):
    pass

class EventUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    venue: str | None = None
    start_at: Optional[UtcDatetime] = None
    end_at: Optional[UtcDatetime] = None
    status: str | None = None
    is_active: bool | None = None

class Event(EventBase):
    id: int

    model_config = {"from_attributes": True}
