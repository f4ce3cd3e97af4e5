"""JSON logging for the ledger service.

Each record becomes one JSON object. Ledger modules log an event name as the
message (``invoice.created``, ``payment.invoice_missing``...) and pass their
fields through ``extra={"extra_data": {...}}``; those fields are merged at the
top level next to the request id and principal of the request being served.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from ..middlewares import principal_ctx_var, request_id_ctx_var
from .config import settings

# The request middleware already logs one line per request.
SILENCED_LOGGERS = ("uvicorn.access",)
RESERVED_KEYS = frozenset({"timestamp", "level", "logger", "message"})


def _context_fields() -> dict[str, str]:
    fields: dict[str, str] = {}
    request_id = request_id_ctx_var.get()
    if request_id:
        fields["request_id"] = request_id
    principal = principal_ctx_var.get()
    if principal:
        fields["principal"] = principal
    return fields


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context_fields())
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping):
            # Event fields never overwrite the envelope keys.
            payload.update({key: value for key, value in extra.items() if key not in RESERVED_KEYS})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging(level: str | None = None) -> None:
    """Send every logger through one JSON handler on stderr."""

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    logging.root.handlers = [handler]
    logging.root.setLevel((level or settings.LOG_LEVEL).upper())
    for name in SILENCED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
