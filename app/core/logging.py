# app/core/logging.py
import logging
import logging.config

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configura o logging da aplicação (console). Chamado uma vez no main."""
    level = (level or settings.LOG_LEVEL or "INFO").upper()
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            # sem handler próprio: propaga para o console do root
            "app": {"level": level},
            # uvicorn já tem handlers próprios; só alinhamos o nível
            "uvicorn": {"level": level},
            "sqlalchemy.engine": {"level": "WARNING"},
        },
        "root": {"handlers": ["console"], "level": "WARNING"},
    })
    logging.getLogger("app").debug("logging configurado (nível=%s)", level)
