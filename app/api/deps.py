import datetime as dt

from fastapi import Depends

from app.core.clock import Clock, utcnow
from app.db.session import get_db  # noqa: F401  (reexportado para os routers)
from app.schemas.scan import DuplicateCheckConfig, ScanPolicy

# ----------------------------------------------------------------------
# Relógio injetável (testes sobrescrevem via dependency_overrides)
# ----------------------------------------------------------------------
def get_clock() -> Clock:
    return utcnow

def get_now(clock: Clock = Depends(get_clock)) -> dt.datetime:
    return clock()

# ----------------------------------------------------------------------
# Políticas de leitura a partir das settings
# ----------------------------------------------------------------------
def get_scan_policy() -> ScanPolicy:
    return ScanPolicy.from_settings()

def get_duplicate_config() -> DuplicateCheckConfig:
    return DuplicateCheckConfig.from_settings()
