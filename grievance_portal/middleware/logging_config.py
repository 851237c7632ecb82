"""
Structured logging configuration.

- Development: one-line readable format with grievance / rule context
- Production: one JSON object per line
- Log level: LOG_LEVEL env variable
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Request and workflow context copied from LogRecord extras when present
CONTEXT_FIELDS = (
    "request_id",
    "grievance_id",
    "rule_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

_QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "httpx", "google_genai")


def _context(record: logging.LogRecord) -> dict:
    return {k: getattr(record, k) for k in CONTEXT_FIELDS if getattr(record, k, None) is not None}


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production / log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: message (grievance=.. rule=..) [12ms]``"""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-8s %(name)s: %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        tags = " ".join(
            f"{label}={getattr(record, key)}"
            for key, label in (("grievance_id", "grievance"), ("rule_id", "rule"))
            if getattr(record, key, None)
        )
        if tags:
            line, sep, trace = line.partition("\n")
            line = f"{line} ({tags}){sep}{trace}"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        return line


def configure_logging(app):
    """
    Install one root handler on stderr.

    Production (not DEBUG, not TESTING) → JSONFormatter at INFO,
    otherwise ReadableFormatter at DEBUG; LOG_LEVEL overrides either.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    # Cleared first so repeated create_app() calls don't stack handlers
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app.logger.setLevel(level)
    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if is_prod else "readable")
