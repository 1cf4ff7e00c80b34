# app/schemas/qr.py
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class _Payload(BaseModel):
    model_config = {"frozen": True}

    @property
    def is_valid(self) -> bool:
        return True


class SessionMarker(_Payload):
    kind: Literal["session_marker"] = "session_marker"
    system: str
    session_id: str
    event_id: str
    data: str = ""   # sufixo opaco, preservado como veio


class StudentMarker(_Payload):
    kind: Literal["student_marker"] = "student_marker"
    system: str
    student_id: str
    data: str = ""


class UrlPayload(_Payload):
    kind: Literal["url"] = "url"
    url: str


class JsonPayload(_Payload):
    kind: Literal["json"] = "json"
    value: Any


class TextPayload(_Payload):
    kind: Literal["text"] = "text"
    text: str


class InvalidPayload(_Payload):
    kind: Literal["invalid"] = "invalid"
    reason: str

    @property
    def is_valid(self) -> bool:
        return False


QRPayload = Annotated[
    Union[SessionMarker, StudentMarker, UrlPayload, JsonPayload, TextPayload, InvalidPayload],
    Field(discriminator="kind"),
]


class QRCodeOut(BaseModel):
    qr_text: str
    image_data_uri: str
