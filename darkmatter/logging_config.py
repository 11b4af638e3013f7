from __future__ import annotations

import json
import logging
import os
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

from darkmatter.config.runtime_paths import logs_dir

DEFAULT_LOG_FILE = "darkmatter.log"
_OPERATION_VAR: ContextVar[str | None] = ContextVar(
    "darkmatter_operation", default=None
)

_RESERVED_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "operation",
    }
)


class StructuredJsonFormatter(logging.Formatter):
    """Render log records as structured JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        operation = getattr(record, "operation", None)
        if operation:
            payload["operation"] = operation

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extras:
            payload["extra"] = _serialise_extra(extras)

        return json.dumps(payload, ensure_ascii=True)


class OperationContextFilter(logging.Filter):
    """Tag each record with the project operation (save/load/new) in flight."""

    def filter(self, record: logging.LogRecord) -> bool:
        operation = get_operation()
        if operation:
            record.operation = operation
        elif not hasattr(record, "operation"):
            record.operation = None
        return True


def _serialise_extra(data: Dict[str, Any]) -> Dict[str, Any]:
    serialised: Dict[str, Any] = {}
    for key, value in data.items():
        try:
            json.dumps(value)
            serialised[key] = value
        except (TypeError, ValueError):
            serialised[key] = repr(value)
    return serialised


def set_operation(value: str | None) -> Token:
    return _OPERATION_VAR.set(value)


def get_operation() -> str | None:
    return _OPERATION_VAR.get()


def reset_operation(token: Token) -> None:
    _OPERATION_VAR.reset(token)


def _coerce_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def default_log_dir() -> Path:
    override = os.getenv("DARKMATTER_LOG_DIR")
    if override:
        return Path(override).expanduser().resolve()
    return logs_dir()


def init_logging(
    log_dir: str | os.PathLike[str] | None = None,
    *,
    level: str = "INFO",
    filename: str = DEFAULT_LOG_FILE,
) -> Path:
    """Initialise root logging with structured JSON output."""

    base = Path(log_dir).expanduser().resolve() if log_dir else default_log_dir()
    base.mkdir(parents=True, exist_ok=True)
    log_path = base / filename

    root_logger = logging.getLogger()
    root_logger.setLevel(_coerce_level(level))

    for handler in list(root_logger.handlers):
        if getattr(handler, "_darkmatter_handler", False):
            root_logger.removeHandler(handler)
            handler.close()

    formatter = StructuredJsonFormatter()
    file_handler = RotatingFileHandler(
        str(log_path),
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    stream_handler = logging.StreamHandler()
    for handler in (file_handler, stream_handler):
        handler.setFormatter(formatter)
        handler.addFilter(OperationContextFilter())
        handler._darkmatter_handler = True  # type: ignore[attr-defined]
        root_logger.addHandler(handler)

    os.environ.setdefault("DARKMATTER_LOG_FILE", str(log_path))
    logging.getLogger(__name__).info(
        "Logging initialized", extra={"log_path": str(log_path)}
    )
    return log_path
