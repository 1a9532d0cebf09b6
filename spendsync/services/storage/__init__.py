"""
Storage Services Package

Key-value persistence for client state. The in-memory backend is used in
tests; the JSON file backend is the default on disk.
"""

from spendsync.services.storage.interface import (
    InMemoryStorage,
    JsonFileStorage,
    KeyValueStorage,
    StateReadError,
    StateStorageError,
    StateVersionError,
    StateWriteError,
)

__all__ = [
    # Interface
    "KeyValueStorage",
    # Implementations
    "InMemoryStorage",
    "JsonFileStorage",
    # Exceptions
    "StateReadError",
    "StateStorageError",
    "StateVersionError",
    "StateWriteError",
]
