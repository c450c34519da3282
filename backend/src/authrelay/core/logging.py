"""Logging configuration for the Auth Relay.

This module sets up structured logging with color coding for development and
JSON output for production. Every handler carries a SecretRedactingFilter so
authorization codes, tokens and key material never reach a log sink, no matter
which logger (ours, uvicorn's access log, a library) emitted the record.
"""

import json
import logging
import os
import re
import socket
import sys
import traceback
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, ClassVar

from .config import get_settings_instance

# Guard against double configuration (import-time and lifespan startup)
_LOGGING_CONFIGURED = False

REDACTED = "[REDACTED]"

# Attributes every LogRecord carries; anything else came in through `extra=`
_STANDARD_RECORD_ATTRS = frozenset(
    [
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
        "getMessage",
        "message",
        "asctime",
    ]
)

SENSITIVE_KEYS = frozenset(
    [
        "code",
        "state",
        "token",
        "id_token",
        "access_token",
        "refresh_token",
        "custom_token",
        "client_secret",
        "private_key",
        "authorization",
        "cookie",
        "set-cookie",
    ]
)

_QUERY_PARAM_PATTERN = re.compile(
    r"(?i)\b(code|state|token|id_token|access_token|refresh_token|client_secret)=([^&\s\"']+)"
)
_JSON_FIELD_PATTERN = re.compile(
    r"(?i)([\"'](?:id_token|access_token|refresh_token|client_secret|private_key|token)[\"']\s*:\s*[\"'])([^\"']+)"
)
_BEARER_PATTERN = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9\-_.~+/]+=*")
_PRIVATE_KEY_PATTERN = re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.DOTALL)


def redact_text(text: str) -> str:
    """Mask credential-looking substrings in free text."""
    text = _PRIVATE_KEY_PATTERN.sub(REDACTED, text)
    text = _BEARER_PATTERN.sub(f"Bearer {REDACTED}", text)
    text = _QUERY_PARAM_PATTERN.sub(rf"\1={REDACTED}", text)
    return _JSON_FIELD_PATTERN.sub(rf"\1{REDACTED}", text)


def redact_value(key: str, value: Any) -> Any:
    """Redact a structured value, recursing into mappings and sequences."""
    if key.lower() in SENSITIVE_KEYS and value is not None:
        return REDACTED
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return {k: redact_value(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(redact_value("", v) for v in value)
    return value


class SecretRedactingFilter(logging.Filter):
    """Strip tokens, codes and key material from messages and extra fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:
            message = str(record.msg)
        record.msg = redact_text(message)
        record.args = None
        for key, value in list(record.__dict__.items()):
            if key in _STANDARD_RECORD_ATTRS:
                continue
            record.__dict__[key] = redact_value(key, value)
        return True


class ColoredFormatter(logging.Formatter):
    """Colored formatter for human-readable logs."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
        "RESET": "\033[0m",  # Reset
    }

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors and trailing extra fields."""
        level_color = self.COLORS.get(record.levelname, "") if self.use_colors else ""
        reset_color = self.COLORS["RESET"] if self.use_colors else ""

        timestamp = datetime.fromtimestamp(record.created, UTC).strftime("%Y-%m-%d %H:%M:%S")
        message = record.getMessage()

        extra_fields = []
        for key, value in record.__dict__.items():
            if key in _STANDARD_RECORD_ATTRS or value is None:
                continue
            # Only include short scalar extras
            if isinstance(value, (str, int, float, bool)) and len(str(value)) < 100:
                extra_fields.append(f"{key}={value}")

        log_line = f"{timestamp} - {level_color}{record.levelname}{reset_color} - {record.name} - {message}"
        if extra_fields:
            log_line += f" | {' '.join(extra_fields)}"

        if record.exc_info:
            exc_info = traceback.format_exception(*record.exc_info)
            log_line += f"\n{level_color}Exception:{reset_color}\n" + redact_text("".join(exc_info))

        return log_line


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging (production/monitoring)."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            exc_type = record.exc_info[0]
            log_data["exception"] = {
                "type": exc_type.__name__ if exc_type is not None else "Unknown",
                "message": redact_text(str(record.exc_info[1])),
                "traceback": [redact_text(line) for line in traceback.format_exception(*record.exc_info)],
            }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging() -> None:
    """Set up logging configuration."""
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if _LOGGING_CONFIGURED:
        return

    settings = get_settings_instance()

    use_colors = settings.environment == "development" and sys.stdout.isatty()
    formatter = JSONFormatter() if settings.log_format == "json" else ColoredFormatter(use_colors=use_colors)
    redacting_filter = SecretRedactingFilter()

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(redacting_filter)
    handlers.append(console_handler)

    if settings.log_dir:
        log_dir = Path(settings.log_dir)
        os.makedirs(log_dir, exist_ok=True)
        # Hostname in the filename so replicas sharing a volume don't clobber each other
        log_path = log_dir / f"authrelay_{socket.gethostname()}.log"

        # Archive the previous run's log so each process start gets a clean file
        if log_path.exists() and log_path.stat().st_size > 0:
            ts = datetime.now(UTC).strftime("%Y-%m-%d_%H-%M-%S")
            try:
                log_path.rename(f"{log_path}.{ts}")
            except OSError:
                pass  # worst case we append

        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        file_handler.addFilter(redacting_filter)
        handlers.append(file_handler)

    level = getattr(logging, settings.log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)

    # Route uvicorn through our handlers so access lines get redacted too
    for name in ["uvicorn", "uvicorn.access", "uvicorn.error"]:
        uvicorn_log = logging.getLogger(name)
        uvicorn_log.setLevel(level)
        uvicorn_log.handlers.clear()
        for handler in handlers:
            uvicorn_log.addHandler(handler)
        uvicorn_log.propagate = False

    # Reduce noise from HTTP and Google client libraries
    external_lib_level = max(level, logging.WARNING)
    for name in [
        "httpx",
        "httpcore",
        "urllib3",
        "requests",
        "requests_oauthlib",
        "google.auth",
        "google.auth.transport",
        "firebase_admin",
    ]:
        logging.getLogger(name).setLevel(external_lib_level)

    logging.getLogger("authrelay").setLevel(level)

    get_logger(__name__).info(
        "Logging configured",
        extra={
            "log_level": settings.log_level,
            "log_format": settings.log_format,
            "environment": settings.environment,
            "use_colors": use_colors,
        },
    )
    _LOGGING_CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the authrelay namespace."""
    if name == "authrelay" or name.startswith("authrelay."):
        return logging.getLogger(name)
    return logging.getLogger(f"authrelay.{name}")
