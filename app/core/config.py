# app/core/config.py
import os
from typing import ClassVar
from pydantic import BaseModel, Field


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _default_database_url() -> str:
    data_dir = os.path.abspath(os.getenv("DATA_DIR", "./data"))
    os.makedirs(data_dir, exist_ok=True)
    return os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(data_dir, 'attendance.db')}")


class Settings(BaseModel):
    # Constante (não vira campo Pydantic)
    DATA_DIR: ClassVar[str] = os.path.abspath(os.getenv("DATA_DIR", "./data"))

    DATABASE_URL: str = Field(default_factory=_default_database_url)
    LOG_LEVEL: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(default_factory=lambda: _env_bool("RUN_MIGRATIONS_ON_STARTUP", True))

    # QR codes
    QR_MARKER: str = Field(default_factory=lambda: os.getenv("QR_MARKER", "DTP"))
    QR_ROTATION_SECONDS: int = Field(default_factory=lambda: _env_int("QR_ROTATION_SECONDS", 45))
    QR_ENFORCE_ROTATION: bool = Field(default_factory=lambda: _env_bool("QR_ENFORCE_ROTATION", False))

    # janelas de time-in / time-out
    SCAN_ALLOW_EARLY: bool = Field(default_factory=lambda: _env_bool("SCAN_ALLOW_EARLY", True))
    SCAN_EARLY_GRACE_MINUTES: int = Field(default_factory=lambda: _env_int("SCAN_EARLY_GRACE_MINUTES", 15))
    SCAN_ALLOW_LATE: bool = Field(default_factory=lambda: _env_bool("SCAN_ALLOW_LATE", True))
    SCAN_LATE_GRACE_MINUTES: int = Field(default_factory=lambda: _env_int("SCAN_LATE_GRACE_MINUTES", 30))

    # detecção de duplicados
    DUPLICATE_MIN_MINUTES_BETWEEN_SCANS: int = Field(default_factory=lambda: _env_int("DUPLICATE_MIN_MINUTES_BETWEEN_SCANS", 1))
    DUPLICATE_ALLOW_MULTIPLE_TIME_IN: bool = Field(default_factory=lambda: _env_bool("DUPLICATE_ALLOW_MULTIPLE_TIME_IN", False))
    DUPLICATE_ALLOW_MULTIPLE_TIME_OUT: bool = Field(default_factory=lambda: _env_bool("DUPLICATE_ALLOW_MULTIPLE_TIME_OUT", False))
    DUPLICATE_MAX_SCANS_PER_SESSION: int = Field(default_factory=lambda: _env_int("DUPLICATE_MAX_SCANS_PER_SESSION", 2))
    DUPLICATE_WINDOW_MINUTES: int = Field(default_factory=lambda: _env_int("DUPLICATE_WINDOW_MINUTES", 5))
    DUPLICATE_CHECK_ACROSS_SESSIONS: bool = Field(default_factory=lambda: _env_bool("DUPLICATE_CHECK_ACROSS_SESSIONS", True))

settings = Settings()
