"""
Structured logging configuration for Postcrop.

This module provides:
- JSON structured logging with structlog
- Context enrichment (session_id, platform)
- Bridging of stdlib logging records into the structlog renderer
- Loguru sink for library-level messages
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

import structlog
from loguru import logger
from structlog.types import FilteringBoundLogger

from .config import settings

# Context variables for editing-session tracking
session_id_ctx: ContextVar[str | None] = ContextVar("session_id", default=None)
platform_ctx: ContextVar[str | None] = ContextVar("platform", default=None)

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


class StructlogFormatter(logging.Formatter):
    """Custom formatter to bridge between stdlib logging and structlog."""

    def __init__(self, processor):
        super().__init__()
        self.processor = processor

    def format(self, record: logging.LogRecord) -> str:
        """Format log record using structlog processor."""
        event_dict = {
            "event": record.getMessage(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if session_id := session_id_ctx.get():
            event_dict["session_id"] = session_id
        if platform := platform_ctx.get():
            event_dict["platform"] = platform

        if record.exc_info:
            event_dict["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                event_dict[key] = value

        return self.processor(None, None, event_dict)


def add_context_fields(logger, method_name, event_dict):
    """Add context fields to every log entry."""
    if session_id := session_id_ctx.get():
        event_dict.setdefault("session_id", session_id)
    if platform := platform_ctx.get():
        event_dict.setdefault("platform", platform)

    event_dict["app"] = settings.app.app_name
    event_dict["version"] = settings.app.version
    event_dict["environment"] = settings.app.environment

    return event_dict


def add_timestamps(logger, method_name, event_dict):
    """Add timestamp in ISO format."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return event_dict


def filter_sensitive_data(logger, method_name, event_dict):
    """Filter sensitive data from logs."""
    sensitive_fields = {"password", "secret", "token", "api_key", "access_token", "refresh_token", "auth"}

    def _filter(obj):
        if isinstance(obj, dict):
            return {
                key: (
                    "[REDACTED]"
                    if any(field in str(key).lower() for field in sensitive_fields)
                    else _filter(value)
                )
                for key, value in obj.items()
            }
        elif isinstance(obj, list):
            return [_filter(item) for item in obj]
        return obj

    return _filter(event_dict)


# Third-party loggers capped at WARNING
QUIET_LOGGERS = ("PIL", "httpx", "httpcore", "asyncio")

LOGURU_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def _renderer():
    if settings.app.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_structlog():
    """Configure structlog on top of stdlib logging."""
    structlog.configure(
        processors=[
            add_context_fields,
            add_timestamps,
            filter_sensitive_data,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_stdlib_logging():
    """Route stdlib records through the structlog renderer."""
    level = getattr(logging, settings.app.log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructlogFormatter(_renderer()))
    handler.setLevel(level)

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_loguru():
    """Configure the Loguru sinks."""
    logger.remove()

    if settings.app.log_format == "json":
        logger.add(sys.stdout, level=settings.app.log_level, serialize=True, diagnose=False)
    else:
        logger.add(sys.stdout, level=settings.app.log_level, format=LOGURU_CONSOLE_FORMAT, diagnose=False)

    if settings.app.log_file:
        logger.add(
            settings.app.log_file,
            level="WARNING",
            rotation="10 MB",
            retention=5,
            serialize=True,
            diagnose=False,
        )


class LoggingContextManager:
    """Context manager for setting logging context."""

    def __init__(self, session_id: str | None = None, platform: str | None = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.platform = platform
        self._tokens = []

    def __enter__(self):
        self._tokens.append(session_id_ctx.set(self.session_id))
        if self.platform:
            self._tokens.append(platform_ctx.set(self.platform))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for token in reversed(self._tokens):
            token.var.reset(token)
        self._tokens.clear()


def setup_logging():
    """Initialize all logging systems."""
    setup_structlog()
    setup_stdlib_logging()
    setup_loguru()


def get_logger(name: str = None) -> FilteringBoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def with_logging_context(session_id: str = None, platform: str = None) -> LoggingContextManager:
    """Create logging context manager."""
    return LoggingContextManager(session_id, platform)


def create_session_id() -> str:
    """Generate unique editing-session ID."""
    return str(uuid.uuid4())
