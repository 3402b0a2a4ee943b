"""
Logging setup for Credit Ingest.

Modules log through ``logging.getLogger(__name__)``. ``configure_logging``
installs one stderr handler on the root logger. Uploads run on
``credit-upload`` worker threads, so the thread name is part of every line.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict, Optional

from credit_ingest.core.config import settings


LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"

# Transport libraries that log per connection or per multipart part.
QUIET_LOGGERS = ("urllib3", "multipart", "python_multipart")

_is_configured = False


def build_logging_config(level: str) -> Dict[str, Any]:
    """dictConfig schema for the given level; transport loggers stay at WARNING."""
    loggers: Dict[str, Any] = {"credit_ingest": {"level": level}}
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "ingest": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "ingest",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": loggers,
        "root": {"handlers": ["stderr"], "level": level},
    }


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure logging once per process.

    Args:
        level: Level name such as "DEBUG"; defaults to ``settings.log_level``.
    """
    global _is_configured

    if _is_configured:
        return

    log_level = (level or settings.log_level or "INFO").upper()
    dictConfig(build_logging_config(log_level))
    logging.getLogger(__name__).debug("Logging configured at %s", log_level)

    _is_configured = True
