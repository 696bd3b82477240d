"""Exceptions raised by the JSON key-value store."""
from __future__ import annotations


class StoreError(RuntimeError):
    """Base class for every failure surfaced by the store."""


class InvalidArgumentError(StoreError, ValueError):
    """Raised for a missing path, bad options or an invalid replacement payload."""


class PermissionDeniedError(StoreError):
    """Raised when the backing file cannot be read or written due to permissions."""


class CorruptStorageError(StoreError):
    """Raised when the backing file exists but does not hold a JSON object."""


class StorageIOError(StoreError):
    """Raised for any other stat, read or write failure."""


class SerializationError(StoreError, TypeError):
    """Raised when the in-memory data cannot be serialized to JSON."""
