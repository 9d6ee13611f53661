"""Logging configuration for the passport service.

Everything under the ``passport`` package logs through module loggers
(``logging.getLogger(__name__)``) that propagate to the ``passport`` logger
configured here. The API process and the Celery worker both call
:func:`configure_logging` once at import time.
"""

import logging
import logging.config
import os
from typing import Any, Dict, Optional

from passport.core.config import Settings, get_settings

LOGGER_NAME = "passport"
LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "celery.beat")

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def build_logging_config(level: str, log_dir: Optional[str] = None) -> Dict[str, Any]:
    """Return a ``dictConfig`` mapping for the service loggers.

    Raises:
        ValueError: ``level`` is not a standard level name
    """
    level = level.upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Invalid log level: {level}")

    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    }
    if log_dir:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "standard",
            "filename": os.path.join(log_dir, f"{LOGGER_NAME}.log"),
            "maxBytes": LOG_FILE_MAX_BYTES,
            "backupCount": LOG_FILE_BACKUPS,
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": handlers,
        "loggers": {
            LOGGER_NAME: {
                "level": level,
                "handlers": list(handlers),
                "propagate": False,
            },
            **{name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        },
    }


def configure_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Apply ``log_level`` and ``log_dir`` from settings to the passport logger."""
    settings = settings or get_settings()
    if settings.log_dir:
        os.makedirs(settings.log_dir, exist_ok=True)
    logging.config.dictConfig(build_logging_config(settings.log_level, settings.log_dir))
    return logging.getLogger(LOGGER_NAME)
