"""Unit tests for device id storage."""

import json

from listening_player.player.storage import DEVICE_ID_KEY, JsonFileDeviceStore, MemoryDeviceStore


def test_memory_store_roundtrip():
    store = MemoryDeviceStore({DEVICE_ID_KEY: "device-1"})

    assert store.get_item(DEVICE_ID_KEY) == "device-1"
    store.remove_item(DEVICE_ID_KEY)
    assert store.get_item(DEVICE_ID_KEY) is None
    # Removing twice is fine
    store.remove_item(DEVICE_ID_KEY)


def test_json_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "local_storage.json"

    JsonFileDeviceStore(path).set_item(DEVICE_ID_KEY, "device-1")

    assert JsonFileDeviceStore(path).get_item(DEVICE_ID_KEY) == "device-1"
    assert json.loads(path.read_text()) == {DEVICE_ID_KEY: "device-1"}
    assert path.stat().st_mode & 0o777 == 0o600


def test_json_store_missing_file_is_empty(tmp_path):
    assert JsonFileDeviceStore(tmp_path / "absent.json").get_item(DEVICE_ID_KEY) is None


def test_json_store_corrupt_file_is_empty(tmp_path):
    path = tmp_path / "local_storage.json"
    path.write_text("{not json")

    store = JsonFileDeviceStore(path)

    assert store.get_item(DEVICE_ID_KEY) is None
    store.set_item(DEVICE_ID_KEY, "device-2")
    assert store.get_item(DEVICE_ID_KEY) == "device-2"


def test_json_store_remove_item(tmp_path):
    path = tmp_path / "local_storage.json"
    store = JsonFileDeviceStore(path)
    store.set_item(DEVICE_ID_KEY, "device-1")
    store.set_item("other", "value")

    store.remove_item(DEVICE_ID_KEY)

    assert json.loads(path.read_text()) == {"other": "value"}
