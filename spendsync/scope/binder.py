"""
Account-Scope Binder

Completes the parameters of account-scoped reads with the account they
belong to.

An explicit, non-empty override always wins; otherwise the persisted
selection is used. When neither exists the read is unscoped: bind()
returns None and the caller must not issue a request.
"""

from typing import Any, Mapping, Optional, Union

from spendsync.models.query import ACCOUNT_SCOPED_DOMAINS, Domain
from spendsync.scope.stores import AccountScopeStore


ACCOUNT_PARAM = "accountId"
# Reads addressed by id or global reference data need no account.
UNSCOPED_OPERATIONS = frozenset({"detail", "presets"})


def requires_account(domain: Union[Domain, str], operation: Optional[str] = None) -> bool:
    """Whether a read of domain/operation must be bound to an account."""
    if operation in UNSCOPED_OPERATIONS:
        return False
    return Domain(domain) in ACCOUNT_SCOPED_DOMAINS


class AccountScopeBinder:
    """Reads the active account from an AccountScopeStore."""

    def __init__(self, store: AccountScopeStore):
        self._store = store

    @property
    def store(self) -> AccountScopeStore:
        return self._store

    def resolve_account_id(self, override: Optional[str] = None) -> Optional[str]:
        if override:
            return override
        return self._store.active_account_id or None

    def bind(
        self,
        params: Optional[Mapping[str, Any]] = None,
        override: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """
        Params with accountId filled in, or None when no account resolves.

        An accountId already present in params counts as an override.
        """
        completed = dict(params or {})
        account_id = self.resolve_account_id(override or completed.get(ACCOUNT_PARAM))
        if account_id is None:
            return None
        completed[ACCOUNT_PARAM] = account_id
        return completed
