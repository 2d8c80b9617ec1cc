import logging
import os
from logging.config import dictConfig
from typing import Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Route application, telemetry and server logs through one stream handler.

    ``TRAINER_LOG_LEVEL`` sets the default level, ``TRAINER_TELEMETRY_LOG_LEVEL``
    tunes the ``TELEMETRY {json}`` lines on their own, and ``TRAINER_DEBUG_SQL=1``
    echoes SQLAlchemy statements.
    """
    root_level = (level or os.getenv("TRAINER_LOG_LEVEL", "INFO")).upper()
    telemetry_level = os.getenv("TRAINER_TELEMETRY_LOG_LEVEL", root_level).upper()
    sql_level = "INFO" if os.getenv("TRAINER_DEBUG_SQL", "0") == "1" else "WARNING"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": DEFAULT_LOG_FORMAT}},
            "handlers": {
                "default": {"class": "logging.StreamHandler", "formatter": "default"},
            },
            "root": {"handlers": ["default"], "level": root_level},
            "loggers": {
                "trainer_profiles.telemetry": {"level": telemetry_level},
                "sqlalchemy.engine": {"level": sql_level},
                # uvicorn installs its own handlers; let records reach ours instead.
                "uvicorn": {"handlers": [], "propagate": True},
                "uvicorn.access": {"handlers": [], "propagate": True},
            },
        }
    )
    logging.getLogger(__name__).debug("Logging configured at %s", root_level)
