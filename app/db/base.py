# app/db/base.py
from app.db.base_class import Base  # noqa: F401

# Carrega módulos para registrar tabelas no metadata (alembic / create_all):
import app.models.event           # noqa: F401
import app.models.event_session   # noqa: F401
import app.models.student         # noqa: F401
import app.models.attendance      # noqa: F401
