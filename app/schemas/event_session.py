from pydantic import BaseModel, field_validator, model_validator
from typing import Optional
import datetime as dt

from app.core.clock import UtcDatetime


def _check_pair(start: Optional[dt.datetime], end: Optional[dt.datetime], label: str) -> None:
    if (start is None) != (end is None):
        raise ValueError(f"{label}: informe início e fim juntos")
    if start is not None and end is not None and end <= start:
        raise ValueError(f"{label}: fim deve ser maior que início")


class EventSessionBase(BaseModel):
    name: str
    start_at: UtcDatetime
    end_at: UtcDatetime
    time_in_start: Optional[UtcDatetime] = None
    time_in_end: Optional[UtcDatetime] = None
    time_out_start: Optional[UtcDatetime] = None
    time_out_end: Optional[UtcDatetime] = None
    is_active: bool = True

    @field_validator("end_at")
    @classmethod
    def _check_time_order(cls, v: dt.datetime, info):
        start = info.data.get("start_at")
        if start and v and v < start:
            raise ValueError("end_at deve ser maior ou igual a start_at")
        return v

    @model_validator(mode="after")
    def _check_windows(self):
        _check_pair(self.time_in_start, self.time_in_end, "janela de time-in")
        _check_pair(self.time_out_start, self.time_out_end, "janela de time-out")
        return self


class EventSessionCreate(EventSessionBase):
    pass


class EventSession(EventSessionBase):
    id: int
    event_id: int
    has_qr_seed: bool = False

    model_config = {"from_attributes": True}


class EventSessionUpdate(BaseModel):
    name: Optional[str] = None
    start_at: Optional[UtcDatetime] = None
    end_at: Optional[UtcDatetime] = None
    time_in_start: Optional[UtcDatetime] = None
    time_in_end: Optional[UtcDatetime] = None
    time_out_start: Optional[UtcDatetime] = None
    time_out_end: Optional[UtcDatetime] = None
    is_active: Optional[bool] = None
    rotate_qr_seed: bool = False   # gera um novo seed para o QR rotativo
