"""Error taxonomy for registry and persistence operations."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from pydantic import ValidationError as PydanticValidationError

if TYPE_CHECKING:  # pragma: no cover - import for type checking only
    from .store import PatientRegistry

__all__ = [
    "AlreadyDischargedError",
    "CapacityExceededError",
    "CorruptDataError",
    "DuplicateIdError",
    "NotFoundError",
    "PersistenceError",
    "RegistryClosedError",
    "RegistryError",
    "ValidationError",
]


class RegistryError(RuntimeError):
    """Base exception carrying the failed operation and a readable reason."""

    default_title = "Registry error"

    def __init__(
        self,
        detail: str | None = None,
        *,
        operation: str | None = None,
        title: str | None = None,
        extensions: Mapping[str, Any] | None = None,
    ) -> None:
        message = detail or title or self.default_title
        super().__init__(message)
        self.detail = message
        self.operation = operation
        self.title = title or self.default_title
        self.extensions = dict(extensions or {})

    def describe(self) -> str:
        """Return a one-line message naming the operation and the reason."""

        if self.operation:
            return f"{self.operation} failed: {self.title}: {self.detail}"
        return f"{self.title}: {self.detail}"


class ValidationError(RegistryError):
    """Raised when a field value is rejected."""

    default_title = "Invalid input"

    @classmethod
    def from_pydantic(
        cls, exc: PydanticValidationError, *, operation: str | None = None
    ) -> "ValidationError":
        """Collapse a pydantic validation failure into a single message."""

        parts = []
        for error in exc.errors():
            location = ".".join(str(item) for item in error.get("loc", ()))
            message = error.get("msg", "invalid value")
            parts.append(f"{location}: {message}" if location else message)
        return cls(
            "; ".join(parts) or str(exc),
            operation=operation,
            extensions={"errors": exc.errors()},
        )


class DuplicateIdError(RegistryError):
    """Raised when a patient id is already present in the registry."""

    default_title = "Duplicate id"


class NotFoundError(RegistryError):
    """Raised when no matching patient record exists."""

    default_title = "Not found"


class AlreadyDischargedError(RegistryError):
    """Raised when discharging a patient that was already discharged."""

    default_title = "Already discharged"


class CapacityExceededError(RegistryError):
    """Raised when the registry is at its maximum capacity."""

    default_title = "Registry full"


class RegistryClosedError(RegistryError):
    """Raised when operating on a registry after ``destroy``."""

    default_title = "Registry closed"


class PersistenceError(RegistryError):
    """Raised when reading or writing the registry file fails."""

    default_title = "I/O error"


class CorruptDataError(PersistenceError):
    """Raised when a persisted registry stream is malformed.

    ``partial`` holds a registry with every record decoded before the failure,
    leaving it to the caller whether to keep that prefix or discard it.
    """

    default_title = "Corrupt data"

    def __init__(
        self,
        detail: str | None = None,
        *,
        partial: "PatientRegistry | None" = None,
        offset: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(detail, **kwargs)
        self.partial = partial
        self.offset = offset
