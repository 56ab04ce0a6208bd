"""Observability utilities shared across patient registry components."""

from .logger import (
    command_context,
    configure_logging,
    generate_command_id,
    get_command_id,
    get_logger,
)

__all__ = [
    "command_context",
    "configure_logging",
    "generate_command_id",
    "get_command_id",
    "get_logger",
]
