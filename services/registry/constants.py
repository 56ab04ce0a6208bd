"""Constants shared across the patient registry modules."""

SERVICE_NAME = "patient-registry"

DEFAULT_MAX_CAPACITY = 50
DEFAULT_INITIAL_CAPACITY = 2

MIN_AGE = 1
MAX_AGE = 120
NAME_MAX_LENGTH = 99
HISTORY_ENTRY_MAX_LENGTH = 499

# Inserted between medical history entries on append.
HISTORY_SEPARATOR = "; "

FILE_MAGIC = b"PREG"
FILE_FORMAT_VERSION = 1

__all__ = [
    "DEFAULT_INITIAL_CAPACITY",
    "DEFAULT_MAX_CAPACITY",
    "FILE_FORMAT_VERSION",
    "FILE_MAGIC",
    "HISTORY_ENTRY_MAX_LENGTH",
    "HISTORY_SEPARATOR",
    "MAX_AGE",
    "MIN_AGE",
    "NAME_MAX_LENGTH",
    "SERVICE_NAME",
]
