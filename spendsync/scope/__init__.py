"""Account scoping and persisted client state."""

from spendsync.scope.binder import ACCOUNT_PARAM, UNSCOPED_OPERATIONS, AccountScopeBinder, requires_account
from spendsync.scope.stores import (
    AccountScopeStore,
    NotificationPreferencesStore,
    PersistentStore,
    SecurityPreferencesStore,
    UserPreferencesStore,
)

__all__ = [
    "ACCOUNT_PARAM",
    "AccountScopeBinder",
    "requires_account",
    "UNSCOPED_OPERATIONS",
    "AccountScopeStore",
    "NotificationPreferencesStore",
    "PersistentStore",
    "SecurityPreferencesStore",
    "UserPreferencesStore",
]
