import logging
import os
from logging.config import dictConfig
from typing import Dict, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(threadName)s %(message)s"

# Library loggers that are chatty at INFO, with the flag that turns each back up.
_LIBRARY_DEBUG_FLAGS: Dict[str, str] = {
    "apscheduler": "ADAPTIVE_DEBUG_SCHEDULER",
    "sqlalchemy.engine": "ADAPTIVE_DEBUG_SQL",
}


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging for the engine host and its scripts.

    ``level`` overrides ``ADAPTIVE_LOG_LEVEL``. Sweep worker threads are named,
    so the thread name is part of every line.
    """
    resolved = (level or os.getenv("ADAPTIVE_LOG_LEVEL", "INFO")).upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": os.getenv("ADAPTIVE_LOG_FORMAT", DEFAULT_LOG_FORMAT),
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["default"],
                "level": resolved,
            },
        }
    )

    for name, flag in _LIBRARY_DEBUG_FLAGS.items():
        debug = os.getenv(flag, "0") == "1"
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)
