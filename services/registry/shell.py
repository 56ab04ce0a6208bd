"""Interactive menu driving the patient registry.

The shell only collects input and prints feedback; every rule lives in
:class:`~services.registry.store.PatientRegistry` and the codec.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Callable, Iterable, TextIO

from .codec import load, save
from .config import RegistrySettings
from .constants import HISTORY_ENTRY_MAX_LENGTH, NAME_MAX_LENGTH
from .errors import CorruptDataError, RegistryError, ValidationError
from .models import Gender, PatientRecord
from .observability import cli_command_context, logger, scrub_for_logging
from .reporting import export_report, render_record
from .store import PatientRegistry

Reader = Callable[[str], str]


class _ExitShell(Exception):
    """Raised by the exit command to leave the menu loop."""


@dataclass(frozen=True, slots=True)
class OpenedRegistry:
    """Registry loaded at startup and whether saving over the file is safe."""

    registry: PatientRegistry
    autosave_allowed: bool
    warning: str | None = None


def open_registry(settings: RegistrySettings) -> OpenedRegistry:
    """Load the registry named by ``settings``.

    A corrupt file keeps the records decoded before the damage and turns
    autosave off, so exiting never overwrites the file with the prefix.
    """

    try:
        registry = load(
            settings.data_file,
            initial_capacity=settings.initial_capacity,
            max_capacity=settings.max_capacity,
        )
    except CorruptDataError as exc:
        logger.warning(
            "registry_load_partial",
            **scrub_for_logging(
                {
                    "path": str(settings.data_file),
                    "reason": exc.title,
                    "detail": exc.detail,
                    "offset": exc.offset,
                    "count": len(exc.partial) if exc.partial is not None else 0,
                }
            ),
        )
        partial = exc.partial
        if partial is None:
            partial = PatientRegistry(
                initial_capacity=settings.initial_capacity,
                max_capacity=settings.max_capacity,
            )
        warning = (
            f"{exc.describe()}. Recovered {len(partial)} patient(s); "
            "autosave is disabled for this session."
        )
        return OpenedRegistry(partial, autosave_allowed=False, warning=warning)
    return OpenedRegistry(registry, autosave_allowed=True)


def _failure_payload(operation: str, exc: RegistryError) -> dict[str, Any]:
    """Log fields for a failed command with patient-entered text redacted."""

    errors = [
        {"loc": error.get("loc", ()), "type": error.get("type")}
        for error in exc.extensions.get("errors", ())
    ]
    return scrub_for_logging(
        {
            "operation": operation,
            "reason": exc.title,
            "detail": exc.detail,
            "errors": errors,
        },
        allow_keys={"loc", "type", "offset"},
    )


class RegistryShell:
    """Numbered menu over a registry, reading from ``read`` and writing to ``out``."""

    def __init__(
        self,
        registry: PatientRegistry,
        settings: RegistrySettings,
        *,
        read: Reader | None = None,
        out: TextIO | None = None,
        autosave: bool | None = None,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self._read = read or input
        self._out = out or sys.stdout
        self.autosave = settings.autosave if autosave is None else autosave
        self._commands: dict[int, tuple[str, str, Callable[[], None]]] = {
            1: ("Add Patient", "add patient", self._add),
            2: ("Update Medical History", "update medical history", self._update_history),
            3: ("Discharge Patient", "discharge patient", self._discharge),
            4: ("Remove Patient", "remove patient", self._remove),
            5: ("Purge Discharged Patients", "remove discharged patients", self._purge),
            6: ("View Active Patients", "list patients", self._list_active),
            7: ("View All Patients", "list patients", self._list_all),
            8: ("Find Patient", "find patient", self._find),
            9: ("Save", "save registry", self._save),
            10: ("Export Report", "export report", self._export),
            0: ("Exit", "exit", self._exit),
        }

    def run(self) -> int:
        """Serve menu commands until exit or end of input. Returns the exit code."""

        while True:
            self._print_menu()
            try:
                raw = self._read("> ")
            except EOFError:
                self._emit("")
                raw = "0"
            try:
                choice = int(raw.strip())
            except ValueError:
                self._emit("Invalid choice!")
                continue

            command = self._commands.get(choice)
            if command is None:
                self._emit("Invalid choice!")
                continue

            _, operation, handler = command
            with cli_command_context(operation):
                try:
                    handler()
                except _ExitShell:
                    return 0
                except EOFError:
                    self._emit(f"{operation} cancelled: end of input")
                except RegistryError as exc:
                    logger.warning("command_failed", **_failure_payload(operation, exc))
                    self._emit(exc.describe())

    def _print_menu(self) -> None:
        stats = self.registry.stats()
        self._emit("")
        self._emit(
            f"=== Patient Records System ({stats.size}/{stats.max_capacity}) ==="
        )
        for number in (*range(1, 11), 0):
            self._emit(f"{number}. {self._commands[number][0]}")

    def _add(self) -> None:
        operation = "add patient"
        if self.registry.stats().is_full:
            self._emit("Database full! Cannot add more patients.")
            return
        patient_id = self._ask_int("Enter patient ID: ", operation)
        name = self._ask_text("Enter patient name: ", operation, NAME_MAX_LENGTH)
        age = self._ask_int("Enter patient age: ", operation)
        gender = self._ask_gender(operation)
        history = self._ask_text(
            "Enter medical history (optional): ",
            operation,
            HISTORY_ENTRY_MAX_LENGTH,
            allow_blank=True,
        )
        record = self.registry.add(patient_id, name, age, gender, history)
        self._emit(f"Patient {record.id} added.")

    def _update_history(self) -> None:
        operation = "update medical history"
        patient_id = self._ask_int("Enter patient ID to update: ", operation)
        addition = self._ask_text(
            "Enter medical history entry: ", operation, HISTORY_ENTRY_MAX_LENGTH
        )
        self.registry.update_history(patient_id, addition)
        self._emit(f"Medical history of patient {patient_id} updated.")

    def _discharge(self) -> None:
        patient_id = self._ask_int("Enter patient ID to discharge: ", "discharge patient")
        self.registry.discharge(patient_id)
        self._emit(f"Patient {patient_id} discharged.")

    def _remove(self) -> None:
        patient_id = self._ask_int("Enter patient ID to remove: ", "remove patient")
        self.registry.remove(patient_id)
        self._emit(f"Patient {patient_id} removed.")

    def _purge(self) -> None:
        removed = self.registry.remove_discharged()
        self._emit(f"Removed {removed} discharged patient(s).")

    def _list_active(self) -> None:
        self._print_records(self.registry.list(include_discharged=False))

    def _list_all(self) -> None:
        self._print_records(self.registry.list(include_discharged=True))

    def _find(self) -> None:
        patient_id = self._ask_int("Enter patient ID: ", "find patient")
        record = self.registry.get(patient_id, include_discharged=True)
        self._emit(render_record(record))

    def _save(self) -> None:
        path = save(self.registry, self.settings.data_file)
        self._emit(f"Saved {len(self.registry)} patient(s) to {path}.")

    def _export(self) -> None:
        path = export_report(self.registry, self.settings.report_file)
        self._emit(f"Report written to {path}.")

    def _exit(self) -> None:
        if self.autosave:
            try:
                self._save()
            except RegistryError as exc:
                self._emit(exc.describe())
        self._emit("Exiting...")
        raise _ExitShell

    def _print_records(self, records: Iterable[PatientRecord]) -> None:
        blocks = [render_record(record) for record in records]
        if not blocks:
            self._emit("No patients.")
            return
        self._emit("\n\n".join(blocks))

    def _ask_int(self, prompt: str, operation: str) -> int:
        raw = self._read(prompt).strip()
        try:
            return int(raw)
        except ValueError:
            raise ValidationError(
                f"expected a whole number, got {raw!r}", operation=operation
            ) from None

    def _ask_text(
        self,
        prompt: str,
        operation: str,
        max_length: int,
        *,
        allow_blank: bool = False,
    ) -> str:
        value = self._read(prompt).strip()
        if not value and not allow_blank:
            raise ValidationError("a value is required", operation=operation)
        if len(value) > max_length:
            raise ValidationError(
                f"at most {max_length} characters allowed", operation=operation
            )
        return value

    def _ask_gender(self, operation: str) -> Gender:
        raw = self._read("Enter gender (M/F/O): ")
        try:
            return Gender.parse(raw)
        except ValueError as exc:
            raise ValidationError(str(exc), operation=operation) from None

    def _emit(self, text: str) -> None:
        print(text, file=self._out)


__all__ = ["OpenedRegistry", "RegistryShell", "open_registry"]
