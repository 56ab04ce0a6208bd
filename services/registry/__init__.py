"""Patient registry: in-memory record store, binary persistence and menu shell."""

from pathlib import Path

from dotenv import load_dotenv

from .codec import decode, encode, load, save
from .config import RegistrySettings, get_settings
from .errors import (
    AlreadyDischargedError,
    CapacityExceededError,
    CorruptDataError,
    DuplicateIdError,
    NotFoundError,
    PersistenceError,
    RegistryClosedError,
    RegistryError,
    ValidationError,
)
from .models import Gender, PatientRecord, RegistryStats
from .observability import cli_command_context, logger, scrub_for_logging
from .reporting import export_report, render_report
from .store import PatientRegistry

__all__ = [
    "__version__",
    "AlreadyDischargedError",
    "CapacityExceededError",
    "CorruptDataError",
    "DuplicateIdError",
    "Gender",
    "NotFoundError",
    "PatientRecord",
    "PatientRegistry",
    "PersistenceError",
    "RegistryClosedError",
    "RegistryError",
    "RegistrySettings",
    "RegistryStats",
    "ValidationError",
    "cli_command_context",
    "decode",
    "encode",
    "export_report",
    "get_settings",
    "load",
    "logger",
    "render_report",
    "save",
    "scrub_for_logging",
]

__version__ = "0.1.0"

load_dotenv(Path(__file__).resolve().parents[2] / ".env", override=False)
