"""Services package."""

from spendsync.services.api import ApiClient, FinanceApi
from spendsync.services.errors import (
    AuthError,
    ConflictError,
    FieldError,
    NetworkError,
    NotFoundError,
    SpendSyncError,
    UnknownError,
    ValidationError,
    from_invalid_body,
    from_response,
    from_transport_error,
    user_message_for,
)
from spendsync.services.storage import (
    InMemoryStorage,
    JsonFileStorage,
    KeyValueStorage,
    StateReadError,
    StateStorageError,
    StateVersionError,
    StateWriteError,
)

__all__ = [
    # API
    "ApiClient",
    "FinanceApi",
    # Errors
    "AuthError",
    "ConflictError",
    "FieldError",
    "NetworkError",
    "NotFoundError",
    "SpendSyncError",
    "UnknownError",
    "ValidationError",
    "from_invalid_body",
    "from_response",
    "from_transport_error",
    "user_message_for",
    # Storage
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueStorage",
    "StateReadError",
    "StateStorageError",
    "StateVersionError",
    "StateWriteError",
]
