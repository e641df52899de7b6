import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from smartdo_voice.core.config import LoggingConfig

ROOT_LOGGER_NAME = "smartdo_voice"
LOG_FILE_NAME = "app.log"

# Voice-session fields passed through `extra=`, in display order
CONTEXT_KEYS = ("session_state", "call_id", "tool", "task_id")


def session_context(**fields: Any) -> dict[str, Any]:
    """Build an `extra=` mapping from the known context keys, dropping empty ones."""
    unknown = set(fields) - set(CONTEXT_KEYS)
    if unknown:
        raise ValueError(f"Unknown log context keys: {', '.join(sorted(unknown))}")
    return {key: value for key, value in fields.items() if value is not None}


def _context_of(record: logging.LogRecord) -> dict[str, Any]:
    context: dict[str, Any] = {}
    for key in CONTEXT_KEYS:
        value = getattr(record, key, None)
        if value is None:
            continue
        context[key] = getattr(value, "value", value)
    return context


class ContextFormatter(logging.Formatter):
    """Plain-text formatter that appends voice-session context as `key=value` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _context_of(record)
        if not context:
            return line
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} [{pairs}]"


class JsonFormatter(logging.Formatter):
    """One JSON object per record; session context is nested under "context"."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        context = _context_of(record)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def build_formatter(config: LoggingConfig) -> logging.Formatter:
    if config.json_output:
        return JsonFormatter()
    return ContextFormatter(config.format)


def setup_logging(config: LoggingConfig, log_dir: Path) -> None:
    """
    Send application and uvicorn logs to stdout, plus a rotating file.

    Args:
        config: Logging section of the app config.
        log_dir: Directory that receives app.log (FS_DIR in practice).
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    formatter = build_formatter(config)

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    _replace_handlers(
        app_logger,
        config.level,
        _with_formatter(logging.StreamHandler(sys.stdout), formatter),
        _with_formatter(
            RotatingFileHandler(
                filename=log_file,
                maxBytes=config.rotate_max_bytes,
                backupCount=config.rotate_backup_count,
                encoding="utf-8",
            ),
            formatter,
        ),
    )

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        _replace_handlers(
            logging.getLogger(name),
            config.level,
            _with_formatter(logging.StreamHandler(sys.stdout), formatter),
        )

    app_logger.info(
        "Logging configured: level=%s, json=%s, file=%s",
        config.level,
        config.json_output,
        log_file,
    )


def _with_formatter(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    return handler


def _replace_handlers(logger: logging.Logger, level: str, *handlers: logging.Handler) -> None:
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        logger.addHandler(handler)
    # Own handlers only; the root logger would print everything twice
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Logger under the `smartdo_voice.` namespace, e.g. `get_logger("services.session")`."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
