"""
JSON logs to stdout (and an optional rotating file).
Only whitelisted `extra` fields are emitted; session credentials never are.
"""
import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from babypeek.core.config import settings

# Chatty per-request loggers of the HTTP stack
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JsonFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, message + known extra fields."""

    EXTRA_FIELDS = (
        "job_id", "result_id", "purchase_id", "variant_index", "stage",
        "from_stage", "to_stage", "workflow_run_ref", "request_id", "path",
        "method", "status_code", "latency_ms", "error", "reason",
        "breaker_name", "old_state", "new_state", "tier", "is_gift",
        "amount", "currency", "outcome", "attempt", "delay_seconds",
        "failure_type", "deleted", "count",
    )

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "env": settings.app_env,
        }
        payload.update(
            (field, getattr(record, field))
            for field in self.EXTRA_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _handlers(formatter: logging.Formatter) -> list[logging.Handler]:
    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    handlers: list[logging.Handler] = [stream]
    if settings.log_file:
        rotating = RotatingFileHandler(
            settings.log_file,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        rotating.setFormatter(formatter)
        handlers.append(rotating)
    return handlers


def configure_logging() -> None:
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers = _handlers(JsonFormatter())
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
