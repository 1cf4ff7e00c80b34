# app/core/clock.py
from __future__ import annotations

import datetime as dt
from typing import Annotated, Callable

from pydantic import AfterValidator

Clock = Callable[[], dt.datetime]


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def ensure_utc(value: dt.datetime) -> dt.datetime:
    # SQLite devolve datetime "naive": assumimos UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


UtcDatetime = Annotated[dt.datetime, AfterValidator(ensure_utc)]
