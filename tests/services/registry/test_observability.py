from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
import sys

import structlog

PROJECT_ROOT = Path(__file__).resolve().parents[3]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from services.registry.models import PatientRecord
from services.registry.observability import cli_command_context, scrub_for_logging
from shared.observability.logger import get_command_id


def test_scrub_for_logging_redacts_patient_text() -> None:
    record = PatientRecord(
        id=3,
        name="Ann",
        age=30,
        gender="F",
        medical_history="HIV",
        admission_timestamp=datetime(2024, 1, 1, tzinfo=UTC),
    )

    sanitized = scrub_for_logging(record)

    assert sanitized["id"] == 3
    assert sanitized["name"] == "[redacted]"
    assert sanitized["medical_history"] == "[redacted]"
    assert sanitized["gender"] == "F"
    assert sanitized["age"] == 30
    assert sanitized["admission_timestamp"] == "2024-01-01T00:00:00+00:00"
    assert sanitized["is_discharged"] is False


def test_scrub_for_logging_respects_allowed_keys() -> None:
    payload = {"hint": "SAFE", "secret": "value", "path": "data/patients.dat"}

    sanitized = scrub_for_logging(payload, allow_keys={"hint"})

    assert sanitized == {
        "hint": "SAFE",
        "secret": "[redacted]",
        "path": "data/patients.dat",
    }


def test_scrub_for_logging_limits_sequences() -> None:
    sanitized = scrub_for_logging({"notes": ["a", "b", "c", "d", "e", "f"]}, max_items=2)

    assert sanitized["notes"] == ["[redacted]", "[redacted]"]


def test_cli_command_context_binds_metadata() -> None:
    with cli_command_context("add patient") as command_id:
        assert command_id == get_command_id()
        context = structlog.contextvars.get_contextvars()
        assert context["operation"] == "add patient"
        assert context["channel"] == "cli"

    remaining = structlog.contextvars.get_contextvars()
    assert "operation" not in remaining
    assert "channel" not in remaining
    assert get_command_id() is None
