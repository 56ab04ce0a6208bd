"""Configuration models for the patient registry."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_INITIAL_CAPACITY, DEFAULT_MAX_CAPACITY


class RegistrySettings(BaseSettings):
    """Runtime configuration for the registry, its storage and the shell."""

    data_file: Path = Field(
        default=Path("data/patients.dat"),
        description="Binary file the registry is loaded from and saved to.",
    )
    report_file: Path = Field(
        default=Path("data/patients_report.txt"),
        description="Destination of the human readable text report.",
    )
    max_capacity: int = Field(
        default=DEFAULT_MAX_CAPACITY,
        ge=1,
        le=10_000,
        description="Maximum number of patient records the registry may hold.",
    )
    initial_capacity: int = Field(
        default=DEFAULT_INITIAL_CAPACITY,
        ge=1,
        description="Number of record slots reserved when a registry is created.",
    )
    autosave: bool = Field(
        default=True,
        description="Save the registry to ``data_file`` when the shell exits.",
    )
    log_level: str = Field(
        default="WARNING",
        description="Logging verbosity level (e.g. debug, info, warning).",
    )

    model_config = SettingsConfigDict(
        env_prefix="REGISTRY_", env_file=".env", extra="ignore"
    )

    @model_validator(mode="after")
    def clamp_initial_capacity(self) -> "RegistrySettings":
        """Never reserve more slots than the registry is allowed to hold."""

        if self.initial_capacity > self.max_capacity:
            self.initial_capacity = self.max_capacity
        return self


@lru_cache
def get_settings() -> RegistrySettings:
    """Return the cached registry settings instance."""

    return RegistrySettings()


__all__ = ["RegistrySettings", "get_settings"]
