import json
import logging
import sys
from datetime import datetime, timezone
from typing import TextIO

from config import settings

ROOT_LOGGER = "pinch"


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    Always present: severity, message, timestamp (ISO 8601, UTC, taken from
    the record), logger. Optional: unit_id and context from the record's
    extras, traceback when exc_info is set. Values json cannot encode
    (enums, numpy scalars) are rendered with str().
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "logger": record.name,
        }

        unit_id = getattr(record, "unit_id", None)
        if unit_id is not None:
            entry["unit_id"] = unit_id

        context = getattr(record, "context", None)
        if context is not None:
            entry["context"] = context

        if record.exc_info and record.exc_info[0]:
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(level: str | None = None, stream: TextIO | None = None) -> logging.Logger:
    """Install the JSON formatter on the 'pinch' logger.

    Meant to be called once by the embedding application; calling it again
    replaces the handler instead of stacking another one.
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredFormatter())

    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel((level or settings.log_level).upper())

    # PIL's plugin loader logs every probe at DEBUG
    logging.getLogger("PIL").setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
