import json
import logging
from concurrent.futures import Future
from unittest.mock import Mock

import pytest

from jsonkv.storage import (
    ABSENT,
    JSONKeyValueStore,
    LocalFileSystem,
    PermissionDeniedError,
    SerializationError,
    StorageIOError,
)


def test_deferred_sync_returns_future_and_writes(tmp_path):
    path = tmp_path / "store.json"
    store = JSONKeyValueStore(path, {"deferred_write": True, "write_on_mutate": False})
    store.set("foo", "bar")

    future = store.sync()

    assert isinstance(future, Future)
    assert future.result(timeout=5) is None
    assert json.loads(path.read_text(encoding="utf-8")) == {"foo": "bar"}
    store.close()


def test_deferred_set_returns_pending_write(tmp_path):
    path = tmp_path / "store.json"
    with JSONKeyValueStore(path, {"deferredWrite": True}) as store:
        future = store.set("foo", 1)
        future.result(timeout=5)

    assert JSONKeyValueStore(path).get("foo") == 1


def test_deferred_writes_snapshot_data_at_call_time(tmp_path):
    path = tmp_path / "store.json"
    with JSONKeyValueStore(path, {"deferred_write": True, "write_on_mutate": False}) as store:
        store.set("counter", 1)
        store.sync()
        store.set("counter", 2)

    assert json.loads(path.read_text(encoding="utf-8")) == {"counter": 1}


def test_close_waits_for_pending_writes(tmp_path):
    path = tmp_path / "store.json"
    store = JSONKeyValueStore(path, {"deferred_write": True})
    for index in range(10):
        store.set(f"key-{index}", index)

    store.close()

    assert len(JSONKeyValueStore(path)) == 10


def test_deferred_failure_is_reported_out_of_band(tmp_path, caplog):
    fs = Mock(wraps=LocalFileSystem())
    fs.write_text.side_effect = OSError("disk full")
    on_error = Mock()
    store = JSONKeyValueStore(
        tmp_path / "store.json",
        {"deferred_write": True},
        filesystem=fs,
        on_error=on_error,
    )

    with caplog.at_level(logging.ERROR, logger="jsonkv.storage.json_store"):
        future = store.set("foo", "bar")
        store.close()

    assert store.get("foo") == "bar"
    assert isinstance(future.exception(), StorageIOError)
    on_error.assert_called_once()
    assert isinstance(on_error.call_args.args[0], StorageIOError)
    assert "Deferred write" in caplog.text


def test_deferred_permission_failure_maps_error(tmp_path):
    fs = Mock(wraps=LocalFileSystem())
    fs.write_text.side_effect = PermissionError("read-only")
    store = JSONKeyValueStore(tmp_path / "store.json", {"deferred_write": True}, filesystem=fs)

    future = store.set("foo", "bar")

    with pytest.raises(PermissionDeniedError):
        future.result(timeout=5)
    store.close()


def test_deferred_mode_still_raises_serialization_errors_inline(tmp_path):
    store = JSONKeyValueStore(tmp_path / "store.json", {"deferred_write": True})

    with pytest.raises(SerializationError):
        store.set("bad", object())

    store.close()


def test_close_without_deferred_writes_is_noop(tmp_path):
    store = JSONKeyValueStore(tmp_path / "store.json")
    store.set("foo", 1)

    store.close()
    store.close()

    assert store.get("foo") == 1


def test_deferred_delete_and_clear_reach_disk(tmp_path):
    path = tmp_path / "store.json"
    with JSONKeyValueStore(path, {"deferred_write": True}) as store:
        store.set("a", 1)
        store.set("b", 2)
        store.set("c", 3)
        assert store.delete("a") is True
        assert store.delete("missing") is ABSENT

    assert json.loads(path.read_text(encoding="utf-8")) == {"b": 2, "c": 3}

    with JSONKeyValueStore(path, {"deferred_write": True}) as store:
        assert store.clear() is store

    assert json.loads(path.read_text(encoding="utf-8")) == {}


def test_deferred_delete_failure_goes_to_hook(tmp_path):
    path = tmp_path / "store.json"
    path.write_text('{"foo": "bar"}', encoding="utf-8")
    fs = Mock(wraps=LocalFileSystem())
    fs.write_text.side_effect = PermissionError("read-only")
    on_error = Mock()
    store = JSONKeyValueStore(path, {"deferred_write": True}, filesystem=fs, on_error=on_error)

    assert store.delete("foo") is True
    store.clear()
    store.close()

    assert on_error.call_count == 1
    assert isinstance(on_error.call_args.args[0], PermissionDeniedError)
    assert json.loads(path.read_text(encoding="utf-8")) == {"foo": "bar"}


def test_raising_error_hook_is_logged(tmp_path, caplog):
    fs = Mock(wraps=LocalFileSystem())
    fs.write_text.side_effect = OSError("disk full")
    on_error = Mock(side_effect=RuntimeError("hook broke"))
    store = JSONKeyValueStore(
        tmp_path / "store.json",
        {"deferred_write": True},
        filesystem=fs,
        on_error=on_error,
    )

    with caplog.at_level(logging.ERROR, logger="jsonkv.storage.json_store"):
        store.set("foo", "bar")
        store.close()

    on_error.assert_called_once()
    hook_records = [
        record for record in caplog.records if "on_error hook raised" in record.getMessage()
    ]
    assert len(hook_records) == 1
    assert hook_records[0].exc_info[0] is RuntimeError
