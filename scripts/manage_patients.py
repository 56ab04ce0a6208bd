"""Interactive patient records manager backed by a local registry file."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Iterable

from services.registry.config import RegistrySettings, get_settings
from services.registry.constants import SERVICE_NAME
from services.registry.errors import RegistryError
from services.registry.shell import RegistryShell, open_registry
from shared.observability import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Add, update, discharge and list patient records through a text "
            "menu, persisting them to a local file between runs."
        )
    )
    parser.add_argument(
        "--data-file",
        dest="data_file",
        type=Path,
        default=None,
        help="Registry file to load at startup and save to (default: REGISTRY_DATA_FILE or data/patients.dat).",
    )
    parser.add_argument(
        "--report-file",
        dest="report_file",
        type=Path,
        default=None,
        help="Destination of the text report written by the export command.",
    )
    parser.add_argument(
        "--autosave",
        dest="autosave",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Control whether the registry is saved on exit.",
    )
    return parser


def _resolve_settings(args: argparse.Namespace) -> RegistrySettings:
    overrides = {
        key: value
        for key, value in (
            ("data_file", args.data_file),
            ("report_file", args.report_file),
            ("autosave", args.autosave),
        )
        if value is not None
    }
    settings = get_settings()
    if overrides:
        settings = settings.model_copy(update=overrides)
    return settings


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(None if argv is None else list(argv))
    settings = _resolve_settings(args)
    configure_logging(service_name=SERVICE_NAME, level=settings.log_level)

    try:
        opened = open_registry(settings)
    except (RegistryError, MemoryError) as exc:
        message = exc.describe() if isinstance(exc, RegistryError) else "out of memory"
        print(f"Unable to open patient registry: {message}", file=sys.stderr)
        return 1

    if opened.warning:
        print(opened.warning, file=sys.stderr)

    shell = RegistryShell(
        opened.registry,
        settings,
        autosave=settings.autosave and opened.autosave_allowed,
    )
    try:
        return shell.run()
    except KeyboardInterrupt:  # pragma: no cover - manual cancellation guard
        return 130
    finally:
        opened.registry.destroy()


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
