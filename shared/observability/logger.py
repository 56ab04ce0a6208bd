"""Logging helpers integrating structlog and loguru with command context."""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Mapping, TextIO
from types import FrameType

import structlog
from loguru import logger as loguru_logger

__all__ = [
    "command_context",
    "configure_logging",
    "generate_command_id",
    "get_command_id",
    "get_logger",
]

_COMMAND_ID: ContextVar[str | None] = ContextVar("command_id", default=None)
_CONFIGURED: bool = False
_SERVICE_NAME: str | None = None
_SINK_ID: int | None = None


def _format_record(record: Mapping[str, Any]) -> str:
    """Return the loguru format string for structured log output."""

    timestamp = record["time"].isoformat()
    level = record["level"].name
    extra = record.get("extra") or {}
    service = extra.get("service", "-")
    command_id = extra.get("command_id") or "-"
    message = record.get("message", "")
    if not isinstance(message, str):
        message = str(message)
    # The return value is still treated as a ``str.format`` template and the
    # structlog payloads are JSON, so braces must be escaped.
    message = message.replace("{", "{{").replace("}", "}}")
    return f"{timestamp} | {level:<8} | {service} | {command_id} | {message}\n"


def _stderr_sink(message: str) -> None:
    """Write to whatever ``sys.stderr`` is at emission time."""

    sys.stderr.write(message)


def _coerce_level(level: str | int) -> tuple[int, str]:
    """Normalize ``level`` to logging and loguru compatible representations."""

    if isinstance(level, int):
        numeric = level
    else:
        normalized = logging.getLevelName(level.upper())
        if not isinstance(normalized, int):
            raise ValueError(f"Unknown log level: {level}")
        numeric = normalized
    name = logging.getLevelName(numeric)
    if not isinstance(name, str):  # pragma: no cover - custom numeric levels
        name = "INFO"
    return numeric, name


def get_command_id() -> str | None:
    """Return the command identifier bound to the current context, if any."""

    return _COMMAND_ID.get()


def generate_command_id() -> str:
    """Return a new opaque command identifier."""

    return uuid.uuid4().hex[:12]


class LoguruInterceptHandler(logging.Handler):
    """Route standard logging records through Loguru while preserving context."""

    def emit(
        self, record: logging.LogRecord
    ) -> None:  # pragma: no cover - thin wrapper
        level: str | int
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame: FrameType | None = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        bound = loguru_logger.bind(logger=record.name)
        command_id = get_command_id()
        if command_id:
            bound = bound.bind(command_id=command_id)

        bound.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _configure_structlog() -> None:
    """Configure structlog to emit JSON payloads with context variables."""

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def configure_logging(
    *,
    service_name: str | None = None,
    level: str | int = "INFO",
    sink: TextIO | None = None,
) -> None:
    """Configure loguru/structlog integration for the current process.

    Log lines go to ``sink`` (``sys.stderr`` by default) so they never mix
    with the interactive menu written to stdout. Calling the function again
    replaces the sink and level but keeps the structlog configuration.
    """

    global _CONFIGURED, _SERVICE_NAME, _SINK_ID

    numeric_level, level_name = _coerce_level(level)

    if _SINK_ID is None:
        loguru_logger.remove()
    else:
        loguru_logger.remove(_SINK_ID)
    _SINK_ID = loguru_logger.add(
        sink or _stderr_sink,
        level=level_name,
        backtrace=False,
        diagnose=False,
        format=_format_record,
    )

    logging.basicConfig(
        handlers=[LoguruInterceptHandler()],
        level=numeric_level,
        force=True,
    )

    if not _CONFIGURED:
        logging.captureWarnings(True)
        _configure_structlog()
        _CONFIGURED = True

    if service_name:
        _SERVICE_NAME = service_name
        loguru_logger.configure(extra={"service": service_name})
        structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog bound logger with the given ``name``."""

    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name)


@contextmanager
def command_context(
    command_id: str | None = None,
    **extra: Any,
) -> Iterator[str]:
    """Bind ``command_id`` and extra context for the lifetime of the block."""

    extra.pop("command_id", None)

    cid = command_id or generate_command_id()
    token = _COMMAND_ID.set(cid)
    context_values = dict(extra)
    if _SERVICE_NAME and "service" not in context_values:
        context_values["service"] = _SERVICE_NAME

    context_api = structlog.contextvars
    previous_context = context_api.get_contextvars()
    context_api.bind_contextvars(command_id=cid, **context_values)

    bound_keys = list(dict.fromkeys(["command_id", *context_values.keys()]))

    with loguru_logger.contextualize(command_id=cid, **extra):
        try:
            yield cid
        finally:
            context_api.unbind_contextvars(*bound_keys)
            restore: dict[str, Any] = {
                key: previous_context[key]
                for key in bound_keys
                if key in previous_context
            }
            if restore:
                context_api.bind_contextvars(**restore)
            _COMMAND_ID.reset(token)
