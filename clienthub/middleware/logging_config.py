"""
Logging setup for the portal.

Every record is stamped with the tenant context of the request that produced
it (request id, organization, caller) so a single org's activity can be
followed across services, webhook deliveries and e-mail side effects.

    LOG_FORMAT=json      one JSON object per line (aggregators)
    LOG_FORMAT=text      compact readable lines (local development)
    LOG_LEVEL            overrides the per-environment default
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

# Attributes lifted from ``extra=`` into structured output
CONTEXT_FIELDS = ("request_id", "org_id", "user_id")
EVENT_FIELDS = (
    "method",
    "path",
    "status",
    "duration_ms",
    "module_key",
    "event_type",
    "error_kind",
    "document_id",
)


class TenantContextFilter(logging.Filter):
    """Fill request_id / org_id / user_id from the active request when absent."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = getattr(g, "request_id", None)
        if getattr(record, "org_id", None) is None:
            grant = getattr(g, "grant", None)
            org_id = grant.org_id if grant is not None else None
            if org_id is None:
                org_id = (request.view_args or {}).get("org_id")
            record.org_id = org_id
        if getattr(record, "user_id", None) is None:
            identity = getattr(g, "identity", None)
            record.user_id = identity.user_id if identity is not None else None
        return True


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in CONTEXT_FIELDS + EVENT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """``12:00:01 INFO  clienthub.services.task_service [org=3 req=ab12] Task moved``"""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tags = []
        org_id = getattr(record, "org_id", None)
        if org_id is not None:
            tags.append(f"org={org_id}")
        request_id = getattr(record, "request_id", None)
        if request_id:
            tags.append(f"req={request_id}")
        tag_str = f" [{' '.join(tags)}]" if tags else ""
        line = f"{ts} {record.levelname:<5} {record.name}{tag_str} {record.getMessage()}"
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" ({duration:.0f}ms)"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for this app."""
    fmt = (app.config.get("LOG_FORMAT") or "text").lower()
    level_name = (app.config.get("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    handler.addFilter(TenantContextFilter())

    root = logging.getLogger()
    # create_app runs once per test; replace rather than stack handlers
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    app.logger.setLevel(level)

    for name in ("urllib3", "werkzeug", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug("Logging configured level=%s format=%s", level_name, fmt)
