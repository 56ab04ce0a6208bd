"""Plain-text report of registry contents.

The report is write-only: it is meant for people and is never read back.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from .errors import PersistenceError
from .models import PatientRecord
from .observability import logger
from .store import PatientRegistry

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def _format_timestamp(value: datetime | None) -> str:
    if value is None:
        return "-"
    return value.strftime(_TIMESTAMP_FORMAT)


def render_record(record: PatientRecord) -> str:
    """Return the labeled block describing a single record."""

    lines = [
        f"ID: {record.id}",
        f"Name: {record.name}",
        f"Age: {record.age}",
        f"Gender: {record.gender.label}",
        f"Status: {'Discharged' if record.is_discharged else 'Active'}",
        f"Admitted: {_format_timestamp(record.admission_timestamp)}",
        f"Discharged: {_format_timestamp(record.discharge_timestamp)}",
        f"Medical History: {record.medical_history or '-'}",
    ]
    return "\n".join(lines)


def render_report(
    registry: PatientRegistry, *, include_discharged: bool = True
) -> str:
    """Return the full report, one block per record separated by a blank line."""

    stats = registry.stats()
    title = f"=== Patient Database ({stats.size}/{stats.max_capacity}) ==="
    blocks = [
        render_record(record)
        for record in registry.list(include_discharged=include_discharged)
    ]
    if not blocks:
        return f"{title}\n\nNo patients on record.\n"
    return title + "\n\n" + "\n\n".join(blocks) + "\n"


def export_report(
    registry: PatientRegistry,
    destination: str | Path,
    *,
    include_discharged: bool = True,
    encoding: str = "utf-8",
) -> Path:
    """Write :func:`render_report` output to ``destination``."""

    path = Path(destination)
    text = render_report(registry, include_discharged=include_discharged)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding=encoding)
    except OSError as exc:
        raise PersistenceError(
            f"could not write {path}: {exc.strerror or exc}",
            operation="export report",
        ) from exc

    logger.info("report_exported", path=str(path), count=len(registry))
    return path


__all__ = ["export_report", "render_record", "render_report"]
