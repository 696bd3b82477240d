"""Storage package exports."""
from .errors import (
    CorruptStorageError,
    InvalidArgumentError,
    PermissionDeniedError,
    SerializationError,
    StorageIOError,
    StoreError,
)
from .filesystem import LocalFileSystem
from .json_store import ABSENT, JSONKeyValueStore

__all__ = [
    "ABSENT",
    "JSONKeyValueStore",
    "LocalFileSystem",
    "StoreError",
    "InvalidArgumentError",
    "PermissionDeniedError",
    "CorruptStorageError",
    "StorageIOError",
    "SerializationError",
]
