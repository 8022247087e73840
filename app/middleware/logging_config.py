"""
Structured logging configuration for the DJT Quest API.

- Development: human-readable colored format
- Production: JSON format (log aggregator compatible)
- LOG_LEVEL / LOG_FORMAT env variables override both defaults

Every record emitted while a request is active carries the request id, the
verified user id and the effective role, so service-layer logs (scope
denials, assignment decisions) can be joined with the access log.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Context fields passed through `extra=` or stamped by _RequestContextFilter
_EXTRA_FIELDS = (
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "request_id",
    "user_id",
    "effective_role",
    "event_id",
    "evaluator_id",
    "job_name",
)


class _RequestContextFilter(logging.Filter):
    """Fill request_id / user_id / effective_role from ``flask.g`` when unset."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        scope = getattr(g, "scope", None)
        defaults = {
            "request_id": getattr(g, "request_id", None),
            "user_id": getattr(g, "jwt_user_id", None),
            "effective_role": scope.effective_role if scope is not None else None,
        }
        for key, value in defaults.items():
            if getattr(record, key, None) is None and value is not None:
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line format for a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",      # cyan
        "INFO": "\033[32m",       # green
        "WARNING": "\033[33m",    # yellow
        "ERROR": "\033[31m",      # red
        "CRITICAL": "\033[35m",   # magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now().strftime("%H:%M:%S")
        parts = [f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"]
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            parts.append(f"[{duration:.0f}ms]")
        for key in ("request_id", "user_id", "job_name"):
            val = getattr(record, key, None)
            if val:
                parts.append(f"{key}={val}")
        base = " ".join(parts)
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def configure_logging(app):
    """
    Install a single stderr handler on the root logger.

    Defaults: DEBUG + readable in development/testing, INFO + JSON otherwise.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = os.getenv("LOG_FORMAT", "json" if is_prod else "readable").lower()
    formatter = JSONFormatter() if fmt == "json" else ReadableFormatter()

    root = logging.getLogger()
    # Drop handlers from a previous create_app() (test sessions build several apps)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    handler.addFilter(_RequestContextFilter())
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
