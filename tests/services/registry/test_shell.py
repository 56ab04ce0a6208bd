"""Tests for the interactive registry menu."""

from __future__ import annotations

import builtins
import io
from pathlib import Path
import sys
from typing import Iterable, Iterator

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[3]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from services.registry import codec
from services.registry.config import RegistrySettings
from services.registry.shell import RegistryShell, open_registry
from services.registry.store import PatientRegistry
from shared.observability import configure_logging


class _ScriptedInput:
    """Feed canned answers to the shell, raising EOFError when exhausted."""

    def __init__(self, answers: Iterable[str]) -> None:
        self._answers = list(answers)
        self.prompts: list[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self._answers:
            raise EOFError
        return self._answers.pop(0)


@pytest.fixture
def settings(tmp_path: Path) -> RegistrySettings:
    return RegistrySettings(
        _env_file=None,
        data_file=tmp_path / "patients.dat",
        report_file=tmp_path / "patients_report.txt",
        max_capacity=3,
    )


def _run(
    registry: PatientRegistry,
    settings: RegistrySettings,
    answers: Iterable[str],
    **kwargs,
) -> tuple[int, str]:
    out = io.StringIO()
    shell = RegistryShell(registry, settings, read=_ScriptedInput(answers), out=out, **kwargs)
    code = shell.run()
    return code, out.getvalue()


def test_full_session_add_update_discharge_and_save(settings: RegistrySettings) -> None:
    registry = PatientRegistry(max_capacity=settings.max_capacity)

    code, output = _run(
        registry,
        settings,
        [
            "1", "1", "Ann", "30", "F", "flu",
            "2", "1", "fever",
            "3", "1",
            "7",
            "0",
        ],
    )

    assert code == 0
    assert "Patient 1 added." in output
    assert "Medical history of patient 1 updated." in output
    assert "Patient 1 discharged." in output
    assert "Medical History: flu; fever" in output
    assert "Exiting..." in output

    saved = codec.load(settings.data_file)
    record = saved.find(1, include_discharged=True)
    assert record.is_discharged is True
    assert record.medical_history == "flu; fever"


def test_errors_are_reported_and_loop_continues(settings: RegistrySettings) -> None:
    registry = PatientRegistry(max_capacity=settings.max_capacity)
    registry.add(1, "Ann", 30, "F")

    code, output = _run(
        registry,
        settings,
        [
            "abc",
            "42",
            "1", "1", "Bob", "40", "M", "",
            "1", "2", "Cy", "200", "O", "",
            "1", "x",
            "1", "3", "Di", "50", "Q",
            "2", "9", "cough",
            "3", "9",
            "8", "5",
            "0",
        ],
        autosave=False,
    )

    assert code == 0
    assert output.count("Invalid choice!") == 2
    assert "add patient failed: Duplicate id" in output
    assert "add patient failed: Invalid input: age" in output
    assert "add patient failed: Invalid input: expected a whole number" in output
    assert "add patient failed: Invalid input: gender must be one of M, F or O" in output
    assert "update medical history failed: Not found" in output
    assert "discharge patient failed: Not found" in output
    assert "find patient failed: Not found" in output
    assert len(registry) == 1
    assert not settings.data_file.exists()


def test_second_discharge_is_reported(settings: RegistrySettings) -> None:
    registry = PatientRegistry(max_capacity=settings.max_capacity)
    registry.add(1, "Ann", 30, "F")

    _, output = _run(registry, settings, ["3", "1", "3", "1", "0"], autosave=False)

    assert "discharge patient failed: Already discharged" in output


def test_full_registry_refuses_add_before_prompting(settings: RegistrySettings) -> None:
    registry = PatientRegistry(max_capacity=settings.max_capacity)
    for patient_id in (1, 2, 3):
        registry.add(patient_id, "Someone", 50, "M")
    reader = _ScriptedInput(["1", "0"])

    RegistryShell(registry, settings, read=reader, out=io.StringIO(), autosave=False).run()

    assert "Enter patient ID: " not in reader.prompts


def test_remove_and_purge_commands(settings: RegistrySettings) -> None:
    registry = PatientRegistry(max_capacity=settings.max_capacity)
    for patient_id in (1, 2, 3):
        registry.add(patient_id, f"Patient {patient_id}", 50, "M")
    registry.discharge(3)

    _, output = _run(registry, settings, ["4", "1", "5", "6", "0"], autosave=False)

    assert "Patient 1 removed." in output
    assert "Removed 1 discharged patient(s)." in output
    assert [record.id for record in registry] == [2]


def test_list_reports_empty_registry(settings: RegistrySettings) -> None:
    _, output = _run(PatientRegistry(), settings, ["6", "0"], autosave=False)

    assert "No patients." in output


def test_export_command_writes_report(settings: RegistrySettings) -> None:
    registry = PatientRegistry(max_capacity=settings.max_capacity)
    registry.add(1, "Ann", 30, "F", "flu")

    _, output = _run(registry, settings, ["10", "0"], autosave=False)

    assert f"Report written to {settings.report_file}." in output
    assert "Name: Ann" in settings.report_file.read_text(encoding="utf-8")


def test_end_of_input_exits_and_autosaves(settings: RegistrySettings) -> None:
    registry = PatientRegistry(max_capacity=settings.max_capacity)
    registry.add(1, "Ann", 30, "F")

    code, output = _run(registry, settings, [])

    assert code == 0
    assert "Saved 1 patient(s)" in output
    assert len(codec.load(settings.data_file)) == 1


def test_end_of_input_mid_command_cancels_it(settings: RegistrySettings) -> None:
    registry = PatientRegistry(max_capacity=settings.max_capacity)

    code, output = _run(registry, settings, ["1", "5"], autosave=False)

    assert code == 0
    assert "add patient cancelled: end of input" in output
    assert len(registry) == 0


def test_menu_header_shows_size_and_maximum(settings: RegistrySettings) -> None:
    registry = PatientRegistry(max_capacity=settings.max_capacity)
    registry.add(1, "Ann", 30, "F")

    _, output = _run(registry, settings, ["0"], autosave=False)

    assert "=== Patient Records System (1/3) ===" in output


def test_open_registry_missing_file(settings: RegistrySettings) -> None:
    opened = open_registry(settings)

    assert len(opened.registry) == 0
    assert opened.registry.max_capacity == 3
    assert opened.autosave_allowed is True
    assert opened.warning is None


def test_open_registry_corrupt_file_keeps_prefix(settings: RegistrySettings) -> None:
    registry = PatientRegistry()
    registry.add(1, "Ann", 30, "F")
    registry.add(2, "Bob", 40, "M", "asthma")
    settings.data_file.write_bytes(codec.encode(registry)[:-2])

    opened = open_registry(settings)

    assert [record.id for record in opened.registry] == [1]
    assert opened.autosave_allowed is False
    assert "Recovered 1 patient(s)" in opened.warning


@pytest.fixture
def log_sink() -> Iterator[io.StringIO]:
    stream = io.StringIO()
    configure_logging(service_name="registry-tests", level="INFO", sink=stream)
    yield stream
    configure_logging(level="WARNING")


def test_default_reader_is_resolved_at_construction(
    settings: RegistrySettings, monkeypatch: pytest.MonkeyPatch
) -> None:
    reader = _ScriptedInput(["6", "0"])
    monkeypatch.setattr(builtins, "input", reader)
    out = io.StringIO()

    code = RegistryShell(PatientRegistry(), settings, out=out, autosave=False).run()

    assert code == 0
    assert reader.prompts == ["> ", "> "]
    assert "No patients." in out.getvalue()


def test_failed_command_log_redacts_patient_text(
    settings: RegistrySettings, log_sink: io.StringIO
) -> None:
    registry = PatientRegistry(max_capacity=settings.max_capacity)

    _run(registry, settings, ["1", "7", "Zed Secret", "200", "M", "", "0"], autosave=False)

    logged = log_sink.getvalue()
    assert "command_failed" in logged
    assert '"operation": "add patient"' in logged
    assert '"reason": "Invalid input"' in logged
    assert '"detail": "[redacted]"' in logged
    assert '"type": "less_than_equal"' in logged
    assert "Zed Secret" not in logged


def test_partial_load_log_redacts_detail(
    settings: RegistrySettings, log_sink: io.StringIO
) -> None:
    registry = PatientRegistry()
    registry.add(1, "Ann", 30, "F")
    registry.add(2, "Bob Private", 40, "M", "asthma")
    settings.data_file.write_bytes(codec.encode(registry)[:-2])

    open_registry(settings)

    logged = log_sink.getvalue()
    assert "registry_load_partial" in logged
    assert '"reason": "Corrupt data"' in logged
    assert '"count": 1' in logged
    assert "Bob Private" not in logged
