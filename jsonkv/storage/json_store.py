"""Simple JSON-backed key-value store utilities."""
from __future__ import annotations

import copy
import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from os import PathLike
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from jsonkv.models import StoreOptions

from .errors import (
    CorruptStorageError,
    InvalidArgumentError,
    PermissionDeniedError,
    SerializationError,
    StorageIOError,
)
from .filesystem import LocalFileSystem

logger = logging.getLogger(__name__)

ErrorHook = Callable[[BaseException], None]


class _Absent:
    """Marker returned for keys that are not in the store."""

    _instance: Optional["_Absent"] = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _reject_duplicate_keys(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise ValueError(f"key {key!r} appears twice once encoded as JSON")
        result[key] = value
    return result


def _json_copy(value: Any) -> Any:
    """Return ``value`` as it reads back from its JSON encoding.

    Tuples come back as lists and non-string keys as strings; keys that
    collide once stringified raise ``ValueError``.
    """
    text = json.dumps(value, allow_nan=False)
    return json.loads(text, object_pairs_hook=_reject_duplicate_keys)


class JSONKeyValueStore:
    """In-memory mapping mirrored to a single JSON document on disk.

    The file is read once at construction. Every mutation rewrites the whole
    file when ``write_on_mutate`` is enabled, otherwise callers persist with an
    explicit :meth:`sync`. With ``deferred_write`` the write runs on a
    background worker and :meth:`sync` returns its ``Future``; failures are
    logged and handed to ``on_error``.

    Instances are not thread-safe. Guard shared instances with an external lock.
    """

    def __init__(
        self,
        path: Union[str, PathLike],
        options: Union[StoreOptions, Mapping[str, Any], None] = None,
        *,
        filesystem: Optional[LocalFileSystem] = None,
        on_error: Optional[ErrorHook] = None,
    ) -> None:
        if path is None or (isinstance(path, str) and not path):
            raise InvalidArgumentError("Missing file path argument.")
        try:
            self._path = Path(path)
        except TypeError as exc:
            raise InvalidArgumentError(f"Invalid file path argument: {path!r}") from exc
        self._options = self._resolve_options(options)
        self._fs = filesystem or LocalFileSystem()
        self._on_error = on_error
        self._executor: Optional[ThreadPoolExecutor] = None
        self._data: Dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def options(self) -> StoreOptions:
        return self._options

    @staticmethod
    def _resolve_options(options: Union[StoreOptions, Mapping[str, Any], None]) -> StoreOptions:
        if options is None:
            return StoreOptions()
        if isinstance(options, StoreOptions):
            return options
        if isinstance(options, Mapping):
            try:
                return StoreOptions.model_validate(dict(options))
            except ValidationError as exc:
                raise InvalidArgumentError(f"Invalid store options: {exc}") from exc
        raise InvalidArgumentError(f"Unsupported options type: {type(options).__name__}")

    def _load(self) -> Dict[str, Any]:
        try:
            stats = self._fs.stat(self._path)
        except FileNotFoundError:
            logger.debug("No storage file at %s, starting empty", self._path)
            return {}
        except PermissionError as exc:
            raise PermissionDeniedError(f'Cannot access path "{self._path}".') from exc
        except OSError as exc:
            raise StorageIOError(
                f'Error while checking for existence of path "{self._path}": {exc}'
            ) from exc

        if not self._fs.can_read_write(self._path):
            raise PermissionDeniedError(
                f'Cannot read & write on path "{self._path}". Check permissions!'
            )
        if stats.st_size == 0:
            return {}

        try:
            raw = self._fs.read_bytes(self._path)
        except OSError as exc:
            raise StorageIOError(f'Error while reading path "{self._path}": {exc}') from exc
        try:
            payload = json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)
        except ValueError as exc:
            raise CorruptStorageError(
                f'Content of "{self._path}" is not empty and is not valid JSON.'
            ) from exc
        if not isinstance(payload, dict):
            raise CorruptStorageError(
                f'Content of "{self._path}" is valid JSON but not a JSON object.'
            )
        logger.debug("Loaded %d keys from %s", len(payload), self._path)
        return payload

    def set(self, key: str, value: Any) -> Optional[Future]:
        """Store the JSON round-tripped copy of ``value`` under ``key``.

        Tuples are stored as lists and non-string keys as strings. Values JSON
        cannot encode, or whose keys collide once stringified, raise
        ``SerializationError`` before anything is stored.
        """
        if not isinstance(key, str):
            raise InvalidArgumentError(f"Keys must be strings, got {type(key).__name__}")
        try:
            stored = _json_copy(value)
        except (TypeError, ValueError, RecursionError) as exc:
            raise SerializationError(f"Value for {key!r} cannot be stored as JSON: {exc}") from exc
        self._data[key] = stored
        if self._options.write_on_mutate:
            return self.sync()
        return None

    def get(self, key: str, default: Any = ABSENT) -> Any:
        if not isinstance(key, str):
            return default
        return self._data.get(key, default)

    def has(self, key: str) -> bool:
        return isinstance(key, str) and key in self._data

    def delete(self, key: str) -> Union[bool, _Absent]:
        """Remove ``key``; ``True`` when removed, ``ABSENT`` when it was never there.

        A failed implicit sync raises and leaves the key removed in memory.
        """
        if not self.has(key):
            return ABSENT
        del self._data[key]
        if self._options.write_on_mutate:
            self.sync()
        return True

    def clear(self) -> "JSONKeyValueStore":
        had_keys = bool(self._data)
        self._data.clear()
        logger.debug("Cleared store at %s", self._path)
        if had_keys and self._options.write_on_mutate:
            self.sync()
        return self

    def sync(self) -> Optional[Future]:
        """Replace the backing file with the current mapping.

        Serialization always happens in the calling thread so the written
        document is a snapshot of the data at call time. Blocking mode returns
        ``None`` once the file is written; deferred mode returns the pending
        write's ``Future``.
        """
        text = self._serialize()
        if self._options.deferred_write:
            future = self._worker().submit(self._write, text)
            future.add_done_callback(self._report_deferred_failure)
            return future
        self._write(text)
        return None

    def data(self, replacement: Any = ABSENT) -> Dict[str, Any]:
        """Return a deep copy of the mapping, optionally replacing it first.

        The replacement must be a mapping that survives a JSON round trip; the
        round-tripped copy becomes the new state. Nothing is written to disk.
        """
        if replacement is ABSENT:
            return copy.deepcopy(self._data)
        if not isinstance(replacement, Mapping):
            raise InvalidArgumentError("Given parameter is not a valid JSON object.")
        try:
            restored = _json_copy(dict(replacement))
        except (TypeError, ValueError, RecursionError) as exc:
            raise InvalidArgumentError("Given parameter is not a valid JSON object.") from exc
        self._data = restored
        return copy.deepcopy(restored)

    def all(self) -> Dict[str, Any]:
        return self.data()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _serialize(self) -> str:
        try:
            return json.dumps(
                self._data,
                indent=self._options.indent_width,
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError, RecursionError) as exc:
            raise SerializationError(f"Storage cannot be serialized to JSON: {exc}") from exc

    def _write(self, text: str) -> None:
        try:
            self._fs.write_text(self._path, text)
        except PermissionError as exc:
            raise PermissionDeniedError(f'Cannot access path "{self._path}".') from exc
        except OSError as exc:
            raise StorageIOError(f'Error while writing to path "{self._path}": {exc}') from exc
        logger.debug("Synced %d characters to %s", len(text), self._path)

    def _worker(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="jsonkv-sync")
        return self._executor

    def _report_deferred_failure(self, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is None:
            return
        logger.error("Deferred write to %s failed: %s", self._path, exc)
        if self._on_error is None:
            return
        try:
            self._on_error(exc)
        except Exception:
            logger.exception("on_error hook raised while handling failed write to %s", self._path)

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._data)

    def __enter__(self) -> "JSONKeyValueStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={str(self._path)!r}, keys={len(self._data)})"
