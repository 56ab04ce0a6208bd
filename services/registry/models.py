"""Patient record models for the registry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from .constants import HISTORY_SEPARATOR, MAX_AGE, MIN_AGE, NAME_MAX_LENGTH

INT32_MAX = 2**31 - 1


def utcnow() -> datetime:
    """Return an aware UTC timestamp truncated to whole seconds.

    Persisted timestamps are epoch seconds, so sub-second precision would not
    survive a save/load cycle.
    """

    return datetime.now(UTC).replace(microsecond=0)


def normalize_timestamp(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).replace(microsecond=0)


class Gender(str, Enum):
    """Single-character gender codes stored with each record."""

    MALE = "M"
    FEMALE = "F"
    OTHER = "O"

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, value: Any) -> "Gender":
        """Accept a code or a full label in any case (``"f"``, ``"Female"``)."""

        if isinstance(value, cls):
            return value
        text = str(value).strip().upper()
        for member in cls:
            if text in (member.value, member.name):
                return member
        raise ValueError(f"gender must be one of M, F or O (got {value!r})")


def join_history(existing: str, addition: str) -> str:
    """Return ``existing`` with ``addition`` appended after the separator."""

    if not existing:
        return addition
    return f"{existing}{HISTORY_SEPARATOR}{addition}"


class PatientRecord(BaseModel):
    """A patient under care, or discharged, kept by :class:`PatientRegistry`.

    ``id`` and ``admission_timestamp`` are frozen; the remaining fields are
    validated on assignment so a rejected update leaves the record unchanged.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: int = Field(gt=0, le=INT32_MAX, frozen=True, description="Patient id")
    name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
    age: int = Field(ge=MIN_AGE, le=MAX_AGE)
    gender: Gender
    medical_history: str = Field(default="")
    admission_timestamp: datetime = Field(default_factory=utcnow, frozen=True)
    discharge_timestamp: datetime | None = Field(default=None)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_discharged(self) -> bool:
        return self.discharge_timestamp is not None

    @field_validator("id", "age", mode="before")
    @classmethod
    def reject_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("must be an integer")
        return value

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name must not be blank")
        if value != value.strip():
            raise ValueError("name must not start or end with whitespace")
        return value

    @field_validator("gender", mode="before")
    @classmethod
    def parse_gender(cls, value: Any) -> Gender:
        return Gender.parse(value)

    @field_validator("admission_timestamp", "discharge_timestamp")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return normalize_timestamp(value)

    @model_validator(mode="after")
    def discharge_after_admission(self) -> "PatientRecord":
        if (
            self.discharge_timestamp is not None
            and self.discharge_timestamp < self.admission_timestamp
        ):
            raise ValueError("discharge_timestamp precedes admission_timestamp")
        return self


@dataclass(frozen=True, slots=True)
class RegistryStats:
    """Point-in-time counters describing a registry."""

    size: int
    active: int
    discharged: int
    capacity: int
    max_capacity: int

    @property
    def is_full(self) -> bool:
        return self.size >= self.max_capacity


__all__ = [
    "Gender",
    "PatientRecord",
    "RegistryStats",
    "join_history",
    "normalize_timestamp",
    "utcnow",
]
