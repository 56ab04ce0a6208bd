"""Binary persistence for :class:`PatientRegistry`.

Layout, little-endian::

    magic "PREG" | version:uint16 | record_count:int32
    per record:
        id:int32 | age:int32 | gender:byte | admission:int64 | discharge:int64
        | is_discharged:byte | name_len:uint64 | name | history_len:uint64
        | history

Timestamps are epoch seconds; ``discharge`` is 0 while the patient is
active. Text fields are UTF-8.
"""

from __future__ import annotations

import os
import struct
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from .constants import (
    DEFAULT_INITIAL_CAPACITY,
    DEFAULT_MAX_CAPACITY,
    FILE_FORMAT_VERSION,
    FILE_MAGIC,
)
from .errors import CorruptDataError, PersistenceError, RegistryError
from .models import PatientRecord
from .observability import logger
from .store import PatientRegistry

_FILE_HEADER = struct.Struct("<4sHi")
_RECORD_HEADER = struct.Struct("<iiBqqB")
_LENGTH = struct.Struct("<Q")


class _Reader:
    """Cursor over an in-memory stream that refuses to read past the end."""

    def __init__(self, data: bytes) -> None:
        self._view = memoryview(data)
        self.offset = 0

    @property
    def remaining(self) -> int:
        return len(self._view) - self.offset

    def take(self, size: int, what: str) -> bytes:
        if size > self.remaining:
            raise ValueError(
                f"{what} needs {size} bytes at offset {self.offset}, "
                f"only {self.remaining} available"
            )
        chunk = self._view[self.offset : self.offset + size].tobytes()
        self.offset += size
        return chunk

    def unpack(self, layout: struct.Struct, what: str) -> tuple:
        return layout.unpack(self.take(layout.size, what))


def _epoch(value: datetime) -> int:
    return int(value.timestamp())


def _from_epoch(value: int) -> datetime:
    return datetime.fromtimestamp(value, UTC)


def encode_record(record: PatientRecord) -> bytes:
    name = record.name.encode("utf-8")
    history = record.medical_history.encode("utf-8")
    discharge = record.discharge_timestamp
    header = _RECORD_HEADER.pack(
        record.id,
        record.age,
        ord(record.gender.value),
        _epoch(record.admission_timestamp),
        _epoch(discharge) if discharge is not None else 0,
        1 if record.is_discharged else 0,
    )
    return b"".join(
        (header, _LENGTH.pack(len(name)), name, _LENGTH.pack(len(history)), history)
    )


def encode(registry: PatientRegistry) -> bytes:
    """Serialize every record, active and discharged, in insertion order."""

    records = list(registry.list(include_discharged=True))
    parts = [_FILE_HEADER.pack(FILE_MAGIC, FILE_FORMAT_VERSION, len(records))]
    parts.extend(encode_record(record) for record in records)
    return b"".join(parts)


def _decode_record(reader: _Reader) -> PatientRecord:
    patient_id, age, gender, admission, discharge, flag = reader.unpack(
        _RECORD_HEADER, "record header"
    )
    if flag not in (0, 1):
        raise ValueError(f"discharge flag must be 0 or 1, got {flag}")
    if flag == 0 and discharge != 0:
        raise ValueError("active record carries a discharge timestamp")

    (name_len,) = reader.unpack(_LENGTH, "name length")
    name = reader.take(name_len, "name").decode("utf-8")
    (history_len,) = reader.unpack(_LENGTH, "history length")
    history = reader.take(history_len, "medical history").decode("utf-8")

    return PatientRecord(
        id=patient_id,
        name=name,
        age=age,
        gender=chr(gender),
        medical_history=history,
        admission_timestamp=_from_epoch(admission),
        discharge_timestamp=_from_epoch(discharge) if flag else None,
    )


def decode(
    data: bytes,
    *,
    initial_capacity: int = DEFAULT_INITIAL_CAPACITY,
    max_capacity: int = DEFAULT_MAX_CAPACITY,
) -> PatientRegistry:
    """Rebuild a registry from ``data``.

    Each record is committed only once it is fully decoded. On failure a
    :class:`CorruptDataError` is raised whose ``partial`` attribute holds the
    records decoded so far.
    """

    operation = "load registry"
    registry = PatientRegistry(
        initial_capacity=initial_capacity, max_capacity=max_capacity
    )
    reader = _Reader(data)

    try:
        magic, version, count = reader.unpack(_FILE_HEADER, "file header")
    except ValueError as exc:
        raise CorruptDataError(
            str(exc), operation=operation, partial=registry, offset=0
        ) from exc
    if magic != FILE_MAGIC:
        raise CorruptDataError(
            f"unrecognized file signature {magic!r}",
            operation=operation,
            partial=registry,
            offset=0,
        )
    if version != FILE_FORMAT_VERSION:
        raise CorruptDataError(
            f"unsupported format version {version}",
            operation=operation,
            partial=registry,
            offset=4,
        )
    if count < 0 or count > max_capacity:
        raise CorruptDataError(
            f"record count {count} outside 0..{max_capacity}",
            operation=operation,
            partial=registry,
            offset=6,
        )

    for index in range(count):
        start = reader.offset
        try:
            registry.restore(_decode_record(reader))
        except PydanticValidationError as exc:
            detail = f"record {index}: {exc.error_count()} invalid field(s)"
            raise CorruptDataError(
                detail, operation=operation, partial=registry, offset=start
            ) from exc
        except (ValueError, OverflowError, OSError) as exc:
            raise CorruptDataError(
                f"record {index}: {exc}",
                operation=operation,
                partial=registry,
                offset=start,
            ) from exc
        except RegistryError as exc:
            raise CorruptDataError(
                f"record {index}: {exc.detail}",
                operation=operation,
                partial=registry,
                offset=start,
            ) from exc

    if reader.remaining:
        raise CorruptDataError(
            f"{reader.remaining} unexpected trailing bytes",
            operation=operation,
            partial=registry,
            offset=reader.offset,
        )
    return registry


def save(registry: PatientRegistry, destination: str | Path) -> Path:
    """Write ``registry`` to ``destination``, replacing it atomically."""

    path = Path(destination)
    payload = encode(registry)
    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "wb", dir=path.parent, prefix=f".{path.name}.", delete=False
        ) as handle:
            tmp_name = handle.name
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except OSError as exc:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        raise PersistenceError(
            f"could not write {path}: {exc.strerror or exc}",
            operation="save registry",
        ) from exc

    logger.info("registry_saved", path=str(path), count=len(registry))
    return path


def load(
    source: str | Path,
    *,
    initial_capacity: int = DEFAULT_INITIAL_CAPACITY,
    max_capacity: int = DEFAULT_MAX_CAPACITY,
) -> PatientRegistry:
    """Read a registry from ``source``; a missing file yields an empty one."""

    path = Path(source)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        logger.info("registry_file_missing", path=str(path))
        return PatientRegistry(
            initial_capacity=initial_capacity, max_capacity=max_capacity
        )
    except OSError as exc:
        raise PersistenceError(
            f"could not read {path}: {exc.strerror or exc}",
            operation="load registry",
        ) from exc

    registry = decode(
        data, initial_capacity=initial_capacity, max_capacity=max_capacity
    )
    logger.info("registry_loaded", path=str(path), count=len(registry))
    return registry


__all__ = ["decode", "encode", "encode_record", "load", "save"]
