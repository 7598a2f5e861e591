"""
Structured JSON logging with correlation IDs.

Every log line is one JSON object: timestamp, level, correlation_id, module,
message, plus whichever whitelisted request/conversion fields the call passed
through `extra=`. CorrelationIdMiddleware sets the ID once per request, so
lines written while handling a lead or an admin export can be grouped.
"""
import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Request fields, then conversion/admin fields, then the failure text
LOG_EXTRA_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_ip",
    "conversion_id",
    "button_type",
    "admin_id",
    "error",
)

# Loggers that drown the request lines at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "httpcore", "httpx")


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def set_correlation_id(cid: str) -> None:
    correlation_id_ctx.set(cid)


def generate_correlation_id() -> str:
    """UUID4 hex, 32 chars; also what X-Correlation-ID carries back."""
    return uuid.uuid4().hex


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class StructuredJsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    Non-ASCII stays as-is (names like "Conceição" are common in leads), and
    values json can't encode (datetimes, enums) fall back to str().
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": _utc_timestamp(),
            "level": record.levelname,
            "correlation_id": get_correlation_id(),
            "module": record.name,
            "message": record.getMessage(),
        }
        log_entry.update(
            (key, getattr(record, key))
            for key in LOG_EXTRA_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def configure_structured_logging(log_level: str = "INFO") -> None:
    """
    Route the root logger to a single stdout handler using StructuredJsonFormatter.
    Called from create_app(); repeated calls replace the handler, never stack it.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
