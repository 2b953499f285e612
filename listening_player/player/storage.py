"""Key/value storage that survives restarts, like a browser's localStorage."""

import json
from pathlib import Path
from typing import Protocol

from listening_player.logging_config import get_logger, log_with_context

logger = get_logger(__name__)

DEVICE_ID_KEY = "spotify_device_id"


class DeviceStore(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryDeviceStore:
    """Store that forgets everything when the process ends."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileDeviceStore:
    """Store backed by a small JSON object on disk.

    The file is rewritten on every change; a missing or corrupt file reads
    as empty.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            log_with_context(
                logger,
                "warning",
                "Unreadable local storage file, starting empty",
                file_path=str(self.path),
                error=str(e),
                event_type="local_storage_invalid",
            )
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(items, indent=2) + "\n", encoding="utf-8")
        self.path.chmod(0o600)

    def get_item(self, key: str) -> str | None:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read()
        items[key] = value
        self._write(items)

    def remove_item(self, key: str) -> None:
        items = self._read()
        if key in items:
            del items[key]
            self._write(items)
