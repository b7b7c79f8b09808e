import json
import logging
import os
from datetime import datetime, timezone

from laborclock.core.errors import LaborEntryError

SERVICE_NAME = "laborclock"

# Attributes every LogRecord carries; anything else came in through extra={...}.
_STANDARD_ATTRS = frozenset(
    {
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module",
        "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
        "relativeCreated", "thread", "threadName", "processName", "process", "taskName",
        "message", "asctime",
    }
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": SERVICE_NAME,
            "message": record.getMessage(),
        }

        extras = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        if extras:
            payload["extra"] = extras

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
            exc = record.exc_info[1]
            # Domain errors carry the ids involved; keep them queryable.
            if isinstance(exc, LaborEntryError):
                payload["error"] = exc.to_dict()

        if record.stack_info:
            payload["stack_info"] = record.stack_info

        return json.dumps(payload, default=str)


def configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(message)s",
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.setFormatter(JsonFormatter())

    # SQL echo is opt-in; the engine logger is noisy at INFO.
    sql_level = logging.INFO if os.getenv("LOG_SQL", "").lower() in ("1", "true", "yes") else logging.WARNING
    logging.getLogger("sqlalchemy.engine").setLevel(sql_level)
