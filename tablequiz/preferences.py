"""
Key-value persistence for player preferences and the signed-in session.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from .models import AudioSettings

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal string-keyed store, the shape of browser localStorage."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process store, used by tests and when no data directory is configured."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Store backed by a single JSON object on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            self._data = {}
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in {self.path}: {e}, starting with empty store")
            payload = {}
        except OSError as e:
            logger.error(f"Cannot read {self.path}: {e}, starting with empty store")
            payload = {}

        if not isinstance(payload, dict):
            logger.warning(f"Store file {self.path} does not contain an object, ignoring it")
            payload = {}
        self._data = payload

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._data, indent=2), encoding='utf-8')
        except OSError as e:
            logger.error(f"Failed to write store file {self.path}: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._save()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._save()


class SettingsStore:
    """Load and persist audio preferences through a key-value store."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def load(self) -> AudioSettings:
        payload = {
            key: self.store.get(key)
            for key in ("soundMuted", "musicMuted", "musicVolume")
            if self.store.get(key) is not None
        }
        return AudioSettings.from_dict(payload)

    def save(self, settings: AudioSettings) -> None:
        for key, value in settings.to_dict().items():
            self.store.set(key, value)
