"""
Tests for the account-scope binder.
"""

import pytest

from spendsync.models.query import Domain
from spendsync.scope import AccountScopeBinder, requires_account


class TestRequiresAccount:
    """Which reads are account scoped."""

    @pytest.mark.parametrize("domain, operation", [
        (Domain.TRANSACTIONS, "list"),
        (Domain.HOME, "daily"),
        (Domain.STATISTICS, "overview"),
        ("home", "balance-bar"),
    ])
    def test_scoped(self, domain, operation):
        assert requires_account(domain, operation) is True

    @pytest.mark.parametrize("domain, operation", [
        (Domain.ACCOUNTS, "list"),
        (Domain.CATEGORIES, "list"),
        (Domain.TAGS, "list"),
        (Domain.TRANSACTIONS, "detail"),
        (Domain.STATISTICS, "presets"),
    ])
    def test_unscoped(self, domain, operation):
        assert requires_account(domain, operation) is False


class TestAccountScopeBinder:
    """Resolution order: explicit override, then the persisted selection."""

    def test_no_account_resolves_to_none(self, scope_store):
        binder = AccountScopeBinder(scope_store)
        assert binder.resolve_account_id() is None
        assert binder.bind({"page": 0}) is None

    def test_persisted_selection_is_used(self, scope_store):
        scope_store.set_active_account("a1")
        binder = AccountScopeBinder(scope_store)

        assert binder.resolve_account_id() == "a1"
        assert binder.bind({"page": 0}) == {"page": 0, "accountId": "a1"}

    def test_override_wins(self, scope_store):
        scope_store.set_active_account("a1")
        binder = AccountScopeBinder(scope_store)

        assert binder.resolve_account_id("a2") == "a2"
        assert binder.bind(None, override="a2") == {"accountId": "a2"}

    def test_account_in_params_counts_as_override(self, scope_store):
        scope_store.set_active_account("a1")
        binder = AccountScopeBinder(scope_store)
        assert binder.bind({"accountId": "a3"}) == {"accountId": "a3"}

    def test_empty_override_is_ignored(self, scope_store):
        scope_store.set_active_account("a1")
        assert AccountScopeBinder(scope_store).resolve_account_id("") == "a1"

    def test_follows_store_changes(self, scope_store):
        binder = AccountScopeBinder(scope_store)
        scope_store.set_active_account("a1")
        assert binder.resolve_account_id() == "a1"
        scope_store.clear_active_account()
        assert binder.resolve_account_id() is None

    def test_params_are_not_mutated(self, scope_store):
        scope_store.set_active_account("a1")
        params = {"page": 1}
        AccountScopeBinder(scope_store).bind(params)
        assert params == {"page": 1}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
