"""
Logging setup for the insight engine.

Every module logs under the ``insight_engine`` namespace (``insight_engine.core.store``,
``insight_engine.services.pattern_detector`` and so on). The library is embedded
in a host application, so nothing is configured on import. A host that wants
the engine's own output calls setup_logging() once; it attaches one stdout
handler to the package logger and leaves the root logger alone.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from insight_engine.core.config import settings

PACKAGE_LOGGER = "insight_engine"

# SQL echo (DATABASE_URL with DEBUG on), pool checkouts and redis-py connection chatter
NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "redis")


class JSONFormatter(logging.Formatter):
    """One JSON object per record; ``extra_fields`` are merged at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> logging.Logger:
    """
    Attach a stdout handler to the ``insight_engine`` logger.

    JSON output when LOG_FORMAT is "json" or ENVIRONMENT is "production",
    plain text otherwise. Explicit arguments override settings. Calling it
    again replaces the previous handler rather than stacking another.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    fmt = log_format or settings.LOG_FORMAT

    if fmt == "json" or settings.ENVIRONMENT == "production":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)
    package_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)
    # The host's root handlers would print every record a second time
    package_logger.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return package_logger
