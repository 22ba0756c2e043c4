"""
Error taxonomy for the offline cache.

Storage errors fail fast and propagate to the calling query function.
Missing references are absorbed during hydration.
"""
from typing import Optional


class OfflineStorageError(Exception):
    """Base class for all offline cache errors."""
    pass


class StorageUnavailable(OfflineStorageError):
    """The storage driver cannot be opened, read or written."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class QueryFailed(OfflineStorageError):
    """A remote channel query failed after all retries were exhausted."""

    def __init__(self, message: str, attempts: int, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.cause = cause


class ReferenceMissing(OfflineStorageError):
    """A foreign id could not be resolved during hydration."""

    def __init__(self, table: str, id: str):
        super().__init__(f"{table} row {id!r} is missing")
        self.table = table
        self.id = id


class SchemaMismatch(OfflineStorageError):
    """Stored schema version differs from the target version."""

    def __init__(self, stored: int, target: int):
        super().__init__(f"stored schema version {stored} does not match {target}")
        self.stored = stored
        self.target = target


class SessionError(OfflineStorageError):
    """A storage session was used outside its open/close lifecycle."""
    pass
