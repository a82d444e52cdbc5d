from __future__ import annotations


class StorageError(Exception):
    """Base class for failures raised by storage operations.

    Messages are safe to show to clients: they never contain absolute paths.
    """


class AccessDenied(StorageError):
    """The path escapes the storage root (or targets something off-limits)."""


class NotFound(StorageError):
    pass


class AlreadyExists(StorageError):
    pass


class IOFailure(StorageError):
    """The storage medium or the output sink failed mid-operation."""
