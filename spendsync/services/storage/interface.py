"""
Key-Value State Storage

DESIGN DECISION: Persisted client state (account selection, preferences)
goes through a minimal key-value interface. This allows us to:
1. Keep the state stores independent of any persistence engine
2. Use in-memory storage for testing
3. Back it with a single JSON file on disk by default

Values are JSON-serializable dicts. Each namespace is independent; no
operation spans more than one key.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Union

import structlog


logger = structlog.get_logger(__name__)


class KeyValueStorage(ABC):
    """
    Abstract interface for persisted state.

    Any storage implementation (memory, JSON file, platform keychain...)
    must implement these methods.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[dict[str, Any]]:
        """
        Read the record stored under key.

        Args:
            key: Namespace key, e.g. "account-storage"

        Returns:
            The stored record, or None if nothing is stored

        Raises:
            StateReadError: If the stored value cannot be decoded
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: dict[str, Any]) -> None:
        """
        Store a record under key, replacing any previous value.

        Raises:
            StateWriteError: If the value cannot be written
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete the record under key. Missing keys are ignored."""
        pass

    def keys(self) -> list[str]:
        return []


class InMemoryStorage(KeyValueStorage):
    """Process-local storage; values are copied through JSON on write."""

    def __init__(self, initial: Optional[dict[str, dict[str, Any]]] = None):
        self._items: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set_item(key, value)

    def get_item(self, key: str) -> Optional[dict[str, Any]]:
        raw = self._items.get(key)
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except ValueError as e:
            raise StateReadError(f"Cannot decode state for {key}: {e}") from e
        if not isinstance(value, dict):
            raise StateReadError(f"State under {key} is not an object")
        return value

    def set_item(self, key: str, value: dict[str, Any]) -> None:
        try:
            self._items[key] = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StateWriteError(f"Cannot serialize state for {key}: {e}") from e

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)

    def set_raw(self, key: str, raw: str) -> None:
        """Store an undecoded string (used to simulate corrupted state)."""
        self._items[key] = raw


class JsonFileStorage(KeyValueStorage):
    """
    All namespaces in one JSON object on disk.

    Writes go to a temporary file that replaces the original, so a crash
    mid-write leaves the previous state intact.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StateReadError(f"Cannot read state file {self._path}: {e}") from e
        if not isinstance(raw, dict):
            raise StateReadError(f"State file {self._path} does not hold an object")
        return raw

    def _write_all(self, data: dict[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self._path)
        except (OSError, TypeError, ValueError) as e:
            raise StateWriteError(f"Cannot write state file {self._path}: {e}") from e

    def get_item(self, key: str) -> Optional[dict[str, Any]]:
        value = self._read_all().get(key)
        if value is not None and not isinstance(value, dict):
            raise StateReadError(f"State under {key} is not an object")
        return value

    def set_item(self, key: str, value: dict[str, Any]) -> None:
        try:
            data = self._read_all()
        except StateReadError:
            logger.warning("state_file_reset", path=str(self._path))
            data = {}
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)

    def keys(self) -> list[str]:
        return sorted(self._read_all())


class StateStorageError(Exception):
    """Base exception for persisted state operations."""
    pass


class StateReadError(StateStorageError):
    """Stored state exists but cannot be decoded."""
    pass


class StateWriteError(StateStorageError):
    """State could not be written."""
    pass


class StateVersionError(StateStorageError):
    """Stored state has a version this client cannot migrate."""
    pass
