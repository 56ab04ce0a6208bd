"""In-memory patient registry with bounded geometric growth."""

from __future__ import annotations

from datetime import datetime
from typing import Iterator

from pydantic import ValidationError as PydanticValidationError

from .constants import (
    DEFAULT_INITIAL_CAPACITY,
    DEFAULT_MAX_CAPACITY,
    HISTORY_ENTRY_MAX_LENGTH,
)
from .errors import (
    AlreadyDischargedError,
    CapacityExceededError,
    DuplicateIdError,
    NotFoundError,
    RegistryClosedError,
    ValidationError,
)
from .models import (
    Gender,
    PatientRecord,
    RegistryStats,
    join_history,
    normalize_timestamp,
    utcnow,
)
from .observability import logger


class PatientRegistry:
    """Ordered collection of :class:`PatientRecord` owned by one process.

    Records keep insertion order. Ids are unique for the lifetime of the
    registry: a discharged record still reserves its id until it is removed
    with :meth:`remove` or :meth:`remove_discharged`.

    ``capacity`` is the number of reserved slots. It starts at
    ``initial_capacity`` and doubles when an insert needs room, never
    exceeding ``max_capacity``.
    """

    def __init__(
        self,
        *,
        initial_capacity: int = DEFAULT_INITIAL_CAPACITY,
        max_capacity: int = DEFAULT_MAX_CAPACITY,
    ) -> None:
        if max_capacity < 1:
            raise ValueError("max_capacity must be positive")
        if initial_capacity < 1:
            raise ValueError("initial_capacity must be positive")
        self._max_capacity = max_capacity
        self._capacity = min(initial_capacity, max_capacity)
        self._records: list[PatientRecord] = []
        self._closed = False

    @classmethod
    def create(
        cls,
        capacity_hint: int = DEFAULT_INITIAL_CAPACITY,
        *,
        max_capacity: int = DEFAULT_MAX_CAPACITY,
    ) -> "PatientRegistry":
        """Return an empty registry reserving ``capacity_hint`` slots."""

        return cls(initial_capacity=capacity_hint, max_capacity=max_capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def max_capacity(self) -> int:
        return self._max_capacity

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        self._ensure_open("count patients")
        return len(self._records)

    def __iter__(self) -> Iterator[PatientRecord]:
        return self.list(include_discharged=True)

    def __contains__(self, patient_id: object) -> bool:
        self._ensure_open("find patient")
        return any(record.id == patient_id for record in self._records)

    def add(
        self,
        patient_id: int,
        name: str,
        age: int,
        gender: Gender | str,
        history: str = "",
    ) -> PatientRecord:
        """Admit a new patient and return the stored record."""

        operation = "add patient"
        self._ensure_open(operation)
        self._ensure_room(operation)

        # Blank input means no history; anything else obeys the entry limit.
        if not history or not history.strip():
            history = ""
        elif len(history) > HISTORY_ENTRY_MAX_LENGTH:
            raise ValidationError(
                f"medical history entry exceeds {HISTORY_ENTRY_MAX_LENGTH} characters",
                operation=operation,
            )

        try:
            record = PatientRecord(
                id=patient_id,
                name=name,
                age=age,
                gender=gender,
                medical_history=history,
            )
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc, operation=operation) from exc

        # Compare the coerced id so "1" and 1 collide.
        if record.id in self:
            raise DuplicateIdError(
                f"patient id {record.id} is already registered",
                operation=operation,
            )

        self._append(record)
        logger.info("patient_added", patient_id=record.id, size=len(self))
        return record

    def restore(self, record: PatientRecord) -> PatientRecord:
        """Insert an already built record, keeping its timestamps.

        Used when loading persisted state; the same capacity and uniqueness
        rules as :meth:`add` apply. The registry keeps its own copy, so the
        caller's object is never shared with it.
        """

        operation = "restore patient"
        self._ensure_open(operation)
        self._ensure_room(operation)
        if record.id in self:
            raise DuplicateIdError(
                f"patient id {record.id} is already registered",
                operation=operation,
            )
        stored = record.model_copy()
        self._append(stored)
        return stored

    def find(
        self, patient_id: int, *, include_discharged: bool = False
    ) -> PatientRecord | None:
        """Return the first record matching ``patient_id`` in insertion order."""

        self._ensure_open("find patient")
        for record in self._records:
            if record.id != patient_id:
                continue
            if record.is_discharged and not include_discharged:
                continue
            return record
        return None

    def get(
        self, patient_id: int, *, include_discharged: bool = False
    ) -> PatientRecord:
        """Like :meth:`find` but raise :class:`NotFoundError` when absent."""

        record = self.find(patient_id, include_discharged=include_discharged)
        if record is None:
            qualifier = "" if include_discharged else "active "
            raise NotFoundError(
                f"no {qualifier}patient with id {patient_id}",
                operation="find patient",
            )
        return record

    def update_history(self, patient_id: int, addition: str) -> PatientRecord:
        """Append ``addition`` to an active patient's medical history."""

        operation = "update medical history"
        self._ensure_open(operation)
        record = self._require_active(patient_id, operation)

        if not addition or not addition.strip():
            raise ValidationError(
                "medical history entry must not be blank", operation=operation
            )
        if len(addition) > HISTORY_ENTRY_MAX_LENGTH:
            raise ValidationError(
                f"medical history entry exceeds {HISTORY_ENTRY_MAX_LENGTH} characters",
                operation=operation,
            )

        # Build the full value first; assignment either applies it or raises
        # and leaves the previous history in place.
        updated = join_history(record.medical_history, addition)
        try:
            record.medical_history = updated
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc, operation=operation) from exc

        logger.info("patient_history_updated", patient_id=patient_id)
        return record

    def discharge(
        self, patient_id: int, *, at: datetime | None = None
    ) -> PatientRecord:
        """Mark an active patient as discharged. The transition is one-way."""

        operation = "discharge patient"
        self._ensure_open(operation)
        record = self.find(patient_id, include_discharged=True)
        if record is None:
            raise NotFoundError(
                f"no active patient with id {patient_id}", operation=operation
            )
        if record.is_discharged:
            raise AlreadyDischargedError(
                f"patient {patient_id} was discharged at "
                f"{record.discharge_timestamp.isoformat()}",
                operation=operation,
            )

        timestamp = normalize_timestamp(at) if at is not None else utcnow()
        if timestamp < record.admission_timestamp:
            raise ValidationError(
                "discharge time precedes admission time", operation=operation
            )
        try:
            record.discharge_timestamp = timestamp
        except PydanticValidationError as exc:
            raise ValidationError.from_pydantic(exc, operation=operation) from exc

        logger.info("patient_discharged", patient_id=patient_id)
        return record

    def remove(self, patient_id: int) -> PatientRecord:
        """Physically remove a record, active or discharged, by id."""

        operation = "remove patient"
        self._ensure_open(operation)
        for index, record in enumerate(self._records):
            if record.id == patient_id:
                del self._records[index]
                logger.info("patient_removed", patient_id=patient_id, size=len(self))
                return record
        raise NotFoundError(f"no patient with id {patient_id}", operation=operation)

    def remove_discharged(self) -> int:
        """Drop every discharged record, keeping the order of the rest."""

        self._ensure_open("remove discharged patients")
        kept = [record for record in self._records if not record.is_discharged]
        removed = len(self._records) - len(kept)
        self._records[:] = kept
        if removed:
            logger.info("discharged_patients_removed", removed=removed, size=len(self))
        return removed

    def list(self, *, include_discharged: bool = False) -> Iterator[PatientRecord]:
        """Yield records in insertion order.

        Each call returns a fresh iterator over the current contents; the
        registry must not be mutated while one is being consumed.
        """

        self._ensure_open("list patients")
        return (
            record
            for record in self._records
            if include_discharged or not record.is_discharged
        )

    def stats(self) -> RegistryStats:
        self._ensure_open("registry stats")
        discharged = sum(1 for record in self._records if record.is_discharged)
        return RegistryStats(
            size=len(self._records),
            active=len(self._records) - discharged,
            discharged=discharged,
            capacity=self._capacity,
            max_capacity=self._max_capacity,
        )

    def destroy(self) -> None:
        """Release every record. The registry cannot be used afterwards."""

        self._records.clear()
        self._capacity = 0
        self._closed = True

    def _append(self, record: PatientRecord) -> None:
        if len(self._records) >= self._capacity:
            self._grow()
        self._records.append(record)

    def _grow(self) -> None:
        new_capacity = min(max(self._capacity, 1) * 2, self._max_capacity)
        logger.debug(
            "registry_grown", capacity=new_capacity, max_capacity=self._max_capacity
        )
        self._capacity = new_capacity

    def _ensure_room(self, operation: str) -> None:
        if len(self._records) >= self._max_capacity:
            raise CapacityExceededError(
                f"maximum of {self._max_capacity} patients reached",
                operation=operation,
            )

    def _ensure_open(self, operation: str) -> None:
        if self._closed:
            raise RegistryClosedError(
                "the registry has been destroyed", operation=operation
            )

    def _require_active(self, patient_id: int, operation: str) -> PatientRecord:
        record = self.find(patient_id)
        if record is None:
            raise NotFoundError(
                f"no active patient with id {patient_id}", operation=operation
            )
        return record


__all__ = ["PatientRegistry"]
