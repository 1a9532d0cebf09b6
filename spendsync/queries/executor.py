"""
Query Execution Facade

DESIGN DECISION: Screens never talk to the API client directly.
Every read goes through QueryExecutor, which:
1. Binds account-scoped reads to the active account (or reports UNSCOPED
   without touching the network)
2. Builds the canonical query key
3. Reads through the reactive cache (coalescing, freshness, retries)

Every write goes through the MutationRunner, so invalidation is never the
caller's job.

The executor only returns what the cache holds or the server sent.
A failed read is reported through QueryState.error; it never turns into
empty data.
"""

import asyncio
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Union

import structlog

from spendsync.audit import AuditLogger
from spendsync.cache.keys import QueryKey, make_key, transaction_keys
from spendsync.cache.store import ReactiveCache
from spendsync.models.query import Domain, Mutation, MutationKind, QueryState
from spendsync.models.resources import PageInfo, PageResponse
from spendsync.queries.mutations import MutationRunner
from spendsync.scope.binder import ACCOUNT_PARAM, AccountScopeBinder, requires_account
from spendsync.services.api import FinanceApi
from spendsync.services.errors import SpendSyncError


logger = structlog.get_logger(__name__)

Params = Optional[Mapping[str, Any]]
Reader = Callable[[FinanceApi, dict[str, Any]], Awaitable[Any]]


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


class UnscopedQueryError(QueryExecutionError):
    """An account-scoped read was requested with no account selected."""
    pass


# =============================================================================
# READ REGISTRY
# =============================================================================

_READERS: dict[tuple[Domain, str], Reader] = {
    (Domain.ACCOUNTS, "list"): lambda api, p: api.accounts.list(p),
    (Domain.ACCOUNTS, "detail"): lambda api, p: api.accounts.get(p["id"]),
    (Domain.ACCOUNTS, "active"): lambda api, p: api.accounts.get_active(),
    (Domain.CATEGORIES, "list"): lambda api, p: api.categories.list(p),
    (Domain.CATEGORIES, "detail"): lambda api, p: api.categories.get(p["id"]),
    (Domain.CATEGORIES, "icons"): lambda api, p: api.categories.icons(),
    (Domain.CATEGORIES, "colors"): lambda api, p: api.categories.colors(),
    (Domain.TRANSACTIONS, "list"): lambda api, p: api.transactions.list(p),
    (Domain.TRANSACTIONS, "detail"): lambda api, p: api.transactions.get(p["id"]),
    (Domain.TAGS, "list"): lambda api, p: api.tags.list(p),
    (Domain.TAGS, "detail"): lambda api, p: api.tags.get(p["id"]),
    (Domain.HOME, "daily"): lambda api, p: api.home.daily(p),
    (Domain.HOME, "week"): lambda api, p: api.home.week(p),
    (Domain.HOME, "monthly"): lambda api, p: api.home.monthly(p),
    (Domain.HOME, "balance-bar"): lambda api, p: api.home.balance_bar(p),
    (Domain.HOME, "state"): lambda api, p: api.home.state(p),
    (Domain.STATISTICS, "overview"): lambda api, p: api.statistics.overview(p),
    (Domain.STATISTICS, "categories"): lambda api, p: api.statistics.categories(p),
    (Domain.STATISTICS, "time-series"): lambda api, p: api.statistics.time_series(p),
    (Domain.STATISTICS, "comparison"): lambda api, p: api.statistics.comparison(p),
    (Domain.STATISTICS, "category-trend"): lambda api, p: api.statistics.category_trend(p),
    (Domain.STATISTICS, "trends"): lambda api, p: api.statistics.trends(p),
    (Domain.STATISTICS, "presets"): lambda api, p: api.statistics.presets(),
}


def supported_reads() -> list[tuple[Domain, str]]:
    return list(_READERS)


def next_page_params(params: Params, page: Union[PageResponse, PageInfo, Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    """
    Params for the page after `page`, or None when it was the last one.

    Each page is its own query key, so pages are cached independently.
    """
    if isinstance(page, PageResponse):
        info = page.page
    elif isinstance(page, PageInfo):
        info = page
    else:
        info = PageInfo.model_validate(page.get("page", page))

    following = info.next_page
    if following is None:
        return None
    return {**dict(params or {}), "page": following}


def _field(value: Any, *names: str) -> Optional[Any]:
    for name in names:
        if isinstance(value, dict) and value.get(name) is not None:
            return value[name]
        found = getattr(value, name, None)
        if found is not None:
            return found
    return None


class QueryExecutor:
    """
    Single entry point for reads and writes against the finance API.

    GUARANTEES:
    - Account-scoped reads never reach the network without an account
    - Equal requests share one cache entry and one in-flight request
    - Every successful write applies its invalidation plan
    """

    def __init__(
        self,
        api: FinanceApi,
        cache: ReactiveCache,
        binder: AccountScopeBinder,
        mutations: MutationRunner,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._api = api
        self._cache = cache
        self._binder = binder
        self._mutations = mutations
        self._audit = audit_logger or AuditLogger()

    @property
    def cache(self) -> ReactiveCache:
        return self._cache

    @property
    def binder(self) -> AccountScopeBinder:
        return self._binder

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    # =========================================================================
    # GENERIC READS
    # =========================================================================

    def resolve(
        self,
        domain: Union[Domain, str],
        operation: str,
        params: Params = None,
        account_id: Optional[str] = None,
    ) -> Optional[QueryKey]:
        """
        Key for a read, or None when it needs an account and none resolves.

        Raises:
            QueryExecutionError: The domain/operation pair is not readable
        """
        domain = Domain(domain)
        if (domain, operation) not in _READERS:
            raise QueryExecutionError(f"Unsupported read: {domain.value}/{operation}")

        if requires_account(domain, operation):
            bound = self._binder.bind(params, account_id)
            if bound is None:
                return None
            return make_key(domain, operation, bound)
        return make_key(domain, operation, params)

    def loader_for(self, key: QueryKey) -> Callable[[], Awaitable[Any]]:
        reader = _READERS[(Domain(key.domain), key.operation)]
        params = key.params_dict

        async def load() -> Any:
            return await reader(self._api, params)

        return load

    def state_of(self, key: QueryKey) -> QueryState:
        return QueryState.from_entry(self._cache.get(key), self._cache.is_stale(key))

    async def query_key(self, key: QueryKey, force: bool = False) -> QueryState:
        """Read a resolved key; failures are reported in the returned state."""
        try:
            await self._cache.fetch(key, self.loader_for(key), force=force)
        except SpendSyncError as e:
            state = self.state_of(key)
            if state.error is None:
                state = state.model_copy(update={"error": e})
            logger.debug("query_failed", key=key.label, code=e.code)
            return state
        return self.state_of(key)

    async def query(
        self,
        domain: Union[Domain, str],
        operation: str,
        params: Params = None,
        *,
        account_id: Optional[str] = None,
        force: bool = False,
    ) -> QueryState:
        """
        Read through the cache and report the outcome as a QueryState.

        Returns:
            UNSCOPED state (no request made) when no account resolves;
            otherwise the entry state after the read settled
        """
        key = self.resolve(domain, operation, params, account_id)
        if key is None:
            self._audit.log_read_unscoped(Domain(domain).value, operation)
            return QueryState.unscoped()
        return await self.query_key(key, force)

    async def read(
        self,
        domain: Union[Domain, str],
        operation: str,
        params: Params = None,
        *,
        account_id: Optional[str] = None,
        force: bool = False,
    ) -> Any:
        """
        Read and return the data itself.

        Raises:
            UnscopedQueryError: No account selected for a scoped read
            SpendSyncError: The read failed with nothing cached
        """
        key = self.resolve(domain, operation, params, account_id)
        if key is None:
            self._audit.log_read_unscoped(Domain(domain).value, operation)
            raise UnscopedQueryError(
                f"{Domain(domain).value}/{operation} requires an active account"
            )
        return await self._cache.fetch(key, self.loader_for(key), force=force)

    def observe(
        self,
        domain: Union[Domain, str],
        operation: str,
        params: Params = None,
        *,
        account_id: Optional[str] = None,
    ) -> "QueryObserver":
        return QueryObserver(self, Domain(domain), operation, params, account_id)

    # =========================================================================
    # NAMED READS
    # =========================================================================

    async def list_accounts(self, params: Params = None) -> PageResponse:
        return await self.read(Domain.ACCOUNTS, "list", params)

    async def get_account(self, account_id: str) -> Any:
        return await self.read(Domain.ACCOUNTS, "detail", {"id": account_id})

    async def get_active_account(self) -> Any:
        return await self.read(Domain.ACCOUNTS, "active")

    async def list_categories(self, params: Params = None) -> PageResponse:
        return await self.read(Domain.CATEGORIES, "list", params)

    async def get_category(self, category_id: str) -> Any:
        return await self.read(Domain.CATEGORIES, "detail", {"id": category_id})

    async def list_transactions(self, params: Params = None, account_id: Optional[str] = None) -> PageResponse:
        return await self.read(Domain.TRANSACTIONS, "list", params, account_id=account_id)

    async def get_transaction(self, transaction_id: str) -> Any:
        return await self.read(Domain.TRANSACTIONS, "detail", {"id": transaction_id})

    async def list_tags(self, params: Params = None) -> PageResponse:
        return await self.read(Domain.TAGS, "list", params)

    async def home(self, operation: str, params: Params = None, account_id: Optional[str] = None) -> Any:
        return await self.read(Domain.HOME, operation, params, account_id=account_id)

    async def statistics(self, operation: str, params: Params = None, account_id: Optional[str] = None) -> Any:
        return await self.read(Domain.STATISTICS, operation, params, account_id=account_id)

    # =========================================================================
    # ACCOUNT WRITES
    # =========================================================================

    async def create_account(self, data: Mapping[str, Any]) -> Any:
        mutation = Mutation(domain=Domain.ACCOUNTS, kind=MutationKind.CREATE, payload=dict(data))
        return await self._mutations.run(mutation, lambda: self._api.accounts.create(data))

    async def update_account(self, account_id: str, data: Mapping[str, Any]) -> Any:
        mutation = Mutation(
            domain=Domain.ACCOUNTS, kind=MutationKind.UPDATE,
            entity_id=account_id, payload=dict(data),
        )
        return await self._mutations.run(mutation, lambda: self._api.accounts.update(account_id, data))

    async def delete_account(self, account_id: str, confirm_name: Optional[str] = None) -> None:
        mutation = Mutation(domain=Domain.ACCOUNTS, kind=MutationKind.DELETE, entity_id=account_id)
        await self._mutations.run(mutation, lambda: self._api.accounts.delete(account_id, confirm_name))

    async def activate_account(self, account_id: str) -> Any:
        mutation = Mutation(domain=Domain.ACCOUNTS, kind=MutationKind.ACTIVATE, entity_id=account_id)
        return await self._mutations.run(mutation, lambda: self._api.accounts.activate(account_id))

    # =========================================================================
    # CATEGORY AND TAG WRITES
    # =========================================================================

    async def create_category(self, data: Mapping[str, Any]) -> Any:
        mutation = Mutation(domain=Domain.CATEGORIES, kind=MutationKind.CREATE, payload=dict(data))
        return await self._mutations.run(mutation, lambda: self._api.categories.create(data))

    async def update_category(self, category_id: str, data: Mapping[str, Any]) -> Any:
        mutation = Mutation(
            domain=Domain.CATEGORIES, kind=MutationKind.UPDATE,
            entity_id=category_id, payload=dict(data),
        )
        return await self._mutations.run(mutation, lambda: self._api.categories.update(category_id, data))

    async def delete_category(self, category_id: str, replacement_category_id: Optional[str] = None) -> None:
        mutation = Mutation(domain=Domain.CATEGORIES, kind=MutationKind.DELETE, entity_id=category_id)
        await self._mutations.run(
            mutation, lambda: self._api.categories.delete(category_id, replacement_category_id)
        )

    async def seed_categories(self, force: bool = False) -> Any:
        mutation = Mutation(domain=Domain.CATEGORIES, kind=MutationKind.SEED)
        return await self._mutations.run(mutation, lambda: self._api.categories.seed(force))

    async def create_tag(self, data: Mapping[str, Any]) -> Any:
        mutation = Mutation(domain=Domain.TAGS, kind=MutationKind.CREATE, payload=dict(data))
        return await self._mutations.run(mutation, lambda: self._api.tags.create(data))

    async def update_tag(self, tag_id: str, data: Mapping[str, Any]) -> Any:
        mutation = Mutation(domain=Domain.TAGS, kind=MutationKind.UPDATE, entity_id=tag_id, payload=dict(data))
        return await self._mutations.run(mutation, lambda: self._api.tags.update(tag_id, data))

    async def delete_tag(self, tag_id: str) -> None:
        mutation = Mutation(domain=Domain.TAGS, kind=MutationKind.DELETE, entity_id=tag_id)
        await self._mutations.run(mutation, lambda: self._api.tags.delete(tag_id))

    # =========================================================================
    # TRANSACTION WRITES
    # =========================================================================

    def _known_account_of(self, transaction_id: str, account_id: Optional[str] = None) -> Optional[str]:
        """
        Owning account: explicit, else from the cached detail. None when
        neither is known.
        """
        if account_id:
            return account_id
        cached = self._cache.get_data(transaction_keys.detail(transaction_id))
        owner = _field(cached, "account_id", ACCOUNT_PARAM)
        return str(owner) if owner else None

    def _shared_owner_of(self, transaction_ids: Sequence[str], account_id: Optional[str] = None) -> Optional[str]:
        """The one account owning every id, or None if unknown or mixed."""
        if account_id:
            return account_id
        owners = {self._known_account_of(i) for i in transaction_ids}
        if len(owners) == 1:
            return owners.pop()
        return None

    async def create_transaction(self, data: Mapping[str, Any]) -> Any:
        """Create a transaction in the given account, or the active one."""
        payload = dict(data)
        if not payload.get(ACCOUNT_PARAM):
            account_id = self._binder.resolve_account_id()
            if account_id:
                payload[ACCOUNT_PARAM] = account_id

        mutation = Mutation(
            domain=Domain.TRANSACTIONS, kind=MutationKind.CREATE,
            account_id=payload.get(ACCOUNT_PARAM), payload=payload,
        )
        return await self._mutations.run(mutation, lambda: self._api.transactions.create(payload))

    async def update_transaction(self, transaction_id: str, data: Mapping[str, Any]) -> Any:
        """
        Update a transaction.

        The account it belonged to before the update is recorded so a move
        between accounts refreshes both.
        """
        mutation = Mutation(
            domain=Domain.TRANSACTIONS, kind=MutationKind.UPDATE,
            entity_id=transaction_id,
            account_id=self._known_account_of(transaction_id),
            payload=dict(data),
        )
        return await self._mutations.run(
            mutation, lambda: self._api.transactions.update(transaction_id, data)
        )

    async def delete_transaction(self, transaction_id: str, account_id: Optional[str] = None) -> None:
        mutation = Mutation(
            domain=Domain.TRANSACTIONS, kind=MutationKind.DELETE,
            entity_id=transaction_id,
            account_id=self._known_account_of(transaction_id, account_id),
        )
        await self._mutations.run(mutation, lambda: self._api.transactions.delete(transaction_id))

    async def bulk_delete_transactions(
        self,
        transaction_ids: Sequence[str],
        account_id: Optional[str] = None,
    ) -> Any:
        ids = list(transaction_ids)
        if not ids:
            raise QueryExecutionError("No transactions selected")
        mutation = Mutation(
            domain=Domain.TRANSACTIONS, kind=MutationKind.BULK_DELETE,
            entity_ids=ids,
            account_id=self._shared_owner_of(ids, account_id),
        )
        return await self._mutations.run(mutation, lambda: self._api.transactions.bulk_delete(ids))


# =============================================================================
# OBSERVERS
# =============================================================================

class QueryObserver:
    """
    Live view of one read for a screen.

    Follows its key: when the active account changes or set_params() is
    called, the observer moves to the new key and starts loading it.
    Notifications for keys it has left are ignored, so a slow response for
    an old key can never overwrite what the screen shows.

    Must be created inside a running event loop.
    """

    def __init__(
        self,
        executor: QueryExecutor,
        domain: Domain,
        operation: str,
        params: Params = None,
        account_id: Optional[str] = None,
    ):
        self._executor = executor
        self._domain = domain
        self._operation = operation
        self._params = dict(params or {})
        self._account_id = account_id
        self._listeners: list[Callable[[QueryState], None]] = []
        self._key: Optional[QueryKey] = None
        self._state = QueryState()
        self._unsubscribe_entry: Optional[Callable[[], None]] = None
        self._task: Optional[asyncio.Future] = None
        self._closed = False

        self._unsubscribe_scope: Optional[Callable[[], None]] = None
        if requires_account(domain, operation) and account_id is None:
            self._unsubscribe_scope = executor.binder.store.subscribe(self._on_scope_changed)

        self._rebind()

    @property
    def key(self) -> Optional[QueryKey]:
        return self._key

    @property
    def state(self) -> QueryState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Callable[[QueryState], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_params(self, params: Params) -> None:
        self._params = dict(params or {})
        self._rebind()

    async def wait(self) -> QueryState:
        """Wait for the load started by the last key change."""
        if self._task is not None:
            await self._task
        return self._state

    async def refetch(self) -> QueryState:
        if self._key is None:
            return self._state
        await self._executor.query_key(self._key, force=True)
        return self._state

    def close(self) -> None:
        """Stop following; in-flight fetches complete into the cache."""
        self._closed = True
        if self._unsubscribe_entry is not None:
            self._unsubscribe_entry()
            self._unsubscribe_entry = None
        if self._unsubscribe_scope is not None:
            self._unsubscribe_scope()
            self._unsubscribe_scope = None
        self._listeners.clear()

    def _on_scope_changed(self, _scope: Any) -> None:
        if not self._closed:
            self._rebind()

    def _rebind(self) -> None:
        key = self._executor.resolve(self._domain, self._operation, self._params, self._account_id)
        if key == self._key and key is not None:
            return

        if self._unsubscribe_entry is not None:
            self._unsubscribe_entry()
            self._unsubscribe_entry = None
        self._key = key

        if key is None:
            self._task = None
            self._executor.audit.log_read_unscoped(self._domain.value, self._operation)
            self._emit(QueryState.unscoped())
            return

        self._unsubscribe_entry = self._executor.cache.subscribe(
            key, lambda entry, followed=key: self._on_entry(followed, entry)
        )
        self._emit(self._executor.state_of(key))
        self._task = asyncio.ensure_future(self._executor.query_key(key))

    def _on_entry(self, followed: QueryKey, entry: Any) -> None:
        if self._closed or followed != self._key:
            return
        self._emit(QueryState.from_entry(entry, self._executor.cache.is_stale(followed)))

    def _emit(self, state: QueryState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("observer_listener_failed", key=self._key.label if self._key else None)
