"""
Main Orchestrator for SpendSync

This module ties together all the components of the sync layer:
API client -> reactive cache -> mutation runner -> query executor,
with the persisted stores and the account-scope binder alongside.

DESIGN DECISION: Components are wired in one place and shared.
There is exactly one cache, one audit logger and one account scope per
session, so an invalidation triggered by any write is seen by every
reader, and switching accounts moves every observer at once.
"""

from pathlib import Path
from typing import Callable, Optional

import httpx
import structlog

from spendsync.audit import AuditLogger
from spendsync.cache import ReactiveCache
from spendsync.config import Settings, get_settings
from spendsync.queries import MutationRunner, QueryExecutor, SearchSession
from spendsync.scheduling import CallLater
from spendsync.scope import (
    AccountScopeBinder,
    AccountScopeStore,
    NotificationPreferencesStore,
    SecurityPreferencesStore,
    UserPreferencesStore,
)
from spendsync.services.api import ApiClient, FinanceApi
from spendsync.services.errors import NotFoundError
from spendsync.services.storage import JsonFileStorage, KeyValueStorage
from spendsync.validation import PayloadValidator


logger = structlog.get_logger(__name__)


class SyncComponents:
    """
    Everything a client session needs, wired together.

    Use as an async context manager, or call aclose() when done, so the
    HTTP connection pool is released.
    """

    def __init__(
        self,
        api: FinanceApi,
        cache: ReactiveCache,
        audit_logger: AuditLogger,
        account_scope: AccountScopeStore,
        user_preferences: UserPreferencesStore,
        notification_preferences: NotificationPreferencesStore,
        security_preferences: SecurityPreferencesStore,
        binder: AccountScopeBinder,
        validator: PayloadValidator,
        mutations: MutationRunner,
        executor: QueryExecutor,
        settings: Settings,
    ):
        self.api = api
        self.cache = cache
        self.audit_logger = audit_logger
        self.account_scope = account_scope
        self.user_preferences = user_preferences
        self.notification_preferences = notification_preferences
        self.security_preferences = security_preferences
        self.binder = binder
        self.validator = validator
        self.mutations = mutations
        self.executor = executor
        self.settings = settings

    async def __aenter__(self) -> "SyncComponents":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def search(self, call_later: Optional[CallLater] = None) -> SearchSession:
        """New debounced transaction search bound to this session."""
        return SearchSession(
            self.executor,
            delay_ms=self.settings.app.default_debounce_ms,
            call_later=call_later,
        )

    async def restore_active_account(self) -> Optional[str]:
        """
        Select the server's active account when nothing is selected locally.

        Returns:
            The active account id, or None if the user has no active account
        """
        if self.account_scope.active_account_id:
            return self.account_scope.active_account_id

        try:
            account = await self.executor.get_active_account()
        except NotFoundError:
            logger.info("no_active_account")
            return None

        self.account_scope.set_active_account(account.id)
        return account.id

    async def aclose(self) -> None:
        await self.cache.drain()
        await self.api.aclose()


def create_sync_components(
    settings: Optional[Settings] = None,
    storage: Optional[KeyValueStorage] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Optional[Callable[[], float]] = None,
) -> SyncComponents:
    """
    Factory function to create all sync components.

    Args:
        settings: Settings to use (defaults to the cached environment settings)
        storage: Where persisted state lives (defaults to the JSON state file)
        transport: httpx transport override, e.g. httpx.MockTransport in tests
        clock: Millisecond clock for the cache and the app-lock check

    Returns:
        SyncComponents sharing one cache, one audit logger and one scope
    """
    settings = settings or get_settings()
    if storage is None:
        storage = JsonFileStorage(Path(settings.storage.state_path))

    audit_logger = AuditLogger()

    account_scope = AccountScopeStore(storage, audit_logger)
    user_preferences = UserPreferencesStore(storage, audit_logger)
    notification_preferences = NotificationPreferencesStore(storage, audit_logger)
    security_preferences = SecurityPreferencesStore(storage, audit_logger, clock=clock)

    api = FinanceApi(ApiClient(settings.api, transport=transport))
    cache = ReactiveCache(settings.cache, audit_logger, clock=clock)
    binder = AccountScopeBinder(account_scope)
    validator = PayloadValidator(settings.app)
    mutations = MutationRunner(cache, audit_logger, validator, account_scope)
    executor = QueryExecutor(api, cache, binder, mutations, audit_logger)

    logger.info(
        "sync_components_created",
        base_url=settings.api.base_url,
        active_account=account_scope.active_account_id,
    )

    return SyncComponents(
        api=api,
        cache=cache,
        audit_logger=audit_logger,
        account_scope=account_scope,
        user_preferences=user_preferences,
        notification_preferences=notification_preferences,
        security_preferences=security_preferences,
        binder=binder,
        validator=validator,
        mutations=mutations,
        executor=executor,
        settings=settings,
    )
