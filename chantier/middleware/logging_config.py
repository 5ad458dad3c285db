"""
Logging setup for the chantier API.

Every record emitted while a request is being served is tagged with the
request id, the authenticated user and, for project-scoped routes, the
project id, so one project's activity can be followed across services.

- Development / testing: one readable line per record
- Production: one JSON object per record
- Level: LOG_LEVEL config key or env variable
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

# Attributes copied from the record into the JSON output when present
_CONTEXT_FIELDS = ("request_id", "user_id", "project_id")
_HTTP_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr")


class RequestContextFilter(logging.Filter):
    """Attach request_id / user_id / project_id from the Flask request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = getattr(g, "request_id", None)
        if getattr(record, "user_id", None) is None:
            record.user_id = getattr(g, "jwt_user_id", None)
        if getattr(record, "project_id", None) is None:
            view_args = request.view_args or {}
            record.project_id = view_args.get("project_id") or request.args.get("project_id")
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS + _HTTP_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:00:01 INFO  chantier.x [req=ab12 user=3 project=7] message``"""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now().strftime("%H:%M:%S")
        tags = [
            f"{label}={getattr(record, key)}"
            for key, label in (("request_id", "req"), ("user_id", "user"), ("project_id", "project"))
            if getattr(record, key, None) is not None
        ]
        ctx = f" [{' '.join(tags)}]" if tags else ""
        line = f"{ts} {record.levelname:<5} {record.name}{ctx} {record.getMessage()}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the chantier handler on the root logger.

    Only a handler previously installed here is replaced, so handlers added
    by the test runner keep receiving records.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = app.config.get("LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG")
    level = getattr(logging, level_name.upper(), logging.INFO)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_chantier_handler", False):
            root.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)
    handler._chantier_handler = True
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    app.logger.setLevel(level)
