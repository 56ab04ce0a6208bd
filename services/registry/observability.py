"""Observability helpers shared by the patient registry."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Iterator

from shared.observability import command_context, configure_logging, get_logger

from .constants import SERVICE_NAME

configure_logging(service_name=SERVICE_NAME, level="WARNING")

logger = get_logger("services.registry")

# Keys whose values never contain PHI and may be logged verbatim.
DEFAULT_ALLOWED_KEYS: frozenset[str] = frozenset(
    {
        "patient_id",
        "id",
        "count",
        "removed",
        "size",
        "capacity",
        "max_capacity",
        "is_discharged",
        "path",
        "operation",
        "reason",
    }
)


@contextmanager
def cli_command_context(
    operation: str, *, command_id: str | None = None, **extra: Any
) -> Iterator[str]:
    """Bind a command identifier for one menu command.

    Every log entry emitted while the command runs carries the identifier and
    the operation name so related events can be grouped.
    """

    cli_context = {"channel": "cli", "operation": operation}
    cli_context.update(extra)

    with command_context(command_id=command_id, **cli_context) as bound_id:
        yield bound_id


def scrub_for_logging(
    payload: Any,
    *,
    allow_keys: Iterable[str] | None = None,
    max_depth: int = 3,
    max_items: int = 5,
) -> Any:
    """Return a sanitized representation of ``payload`` safe for log emission.

    Patient names and medical history are PHI, so strings are replaced with a
    ``"[redacted]"`` placeholder unless their key is in ``allow_keys`` or
    :data:`DEFAULT_ALLOWED_KEYS`. Pydantic models are dumped and traversed up
    to ``max_depth`` levels; sequences are cut to ``max_items`` elements.
    """

    allowed = set(DEFAULT_ALLOWED_KEYS)
    allowed.update(allow_keys or ())

    def _scrub(value: Any, depth: int) -> Any:
        if depth <= 0:
            return "[scrubbed]"

        if isinstance(value, Mapping):
            sanitized: dict[str, Any] = {}
            for key, item in value.items():
                key_str = str(key)
                if key_str in allowed:
                    sanitized[key_str] = _plain(item)
                else:
                    sanitized[key_str] = _scrub(item, depth - 1)
            return sanitized

        if hasattr(value, "model_dump"):
            mapping = value.model_dump(mode="python")
            if isinstance(mapping, Mapping):
                return _scrub(mapping, depth)

        if isinstance(value, Enum):
            return value.value

        if isinstance(value, str):
            return value if not value else "[redacted]"

        if isinstance(value, (bytes, bytearray)):
            return "[bytes]"

        if isinstance(value, datetime):
            return value.isoformat()

        if isinstance(value, Sequence):
            sample = [_scrub(item, depth - 1) for item in list(value)[:max_items]]
            if isinstance(value, tuple):
                return tuple(sample)
            return sample

        if isinstance(value, (int, float, bool)) or value is None:
            return value

        return str(value)

    return _scrub(payload, max_depth)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


__all__ = [
    "DEFAULT_ALLOWED_KEYS",
    "cli_command_context",
    "logger",
    "scrub_for_logging",
]
