"""
Mutation Runner

Sends one write to the server and applies its consequences.

FLOW:
1. Local validation (rejected payloads never reach the network)
2. The API call, exactly once (writes are never retried)
3. On failure: log through the audit logger and re-raise; the cache is
   left untouched, unless the server answered 2xx with an unusable body
   (the write happened, so the affected regions are refreshed without a
   result to patch from)
4. On success: compute the invalidation plan from the server's response,
   apply it to the cache, then update the account scope if the write
   changed which account is active

Every step of one mutation shares a correlation id in the audit log.
"""

from typing import Any, Awaitable, Callable, Optional, TypeVar

from spendsync.audit import AuditLogger, create_correlation_id
from spendsync.cache.invalidation import apply_plan, on_mutation_success
from spendsync.cache.store import ReactiveCache
from spendsync.models.query import Domain, Mutation, MutationKind
from spendsync.scope.stores import AccountScopeStore
from spendsync.services.errors import INVALID_RESPONSE_CODE, SpendSyncError, ValidationError
from spendsync.validation import PayloadValidator


T = TypeVar("T")


def _field(result: Any, *names: str) -> Any:
    for name in names:
        if isinstance(result, dict) and result.get(name) is not None:
            return result[name]
        value = getattr(result, name, None)
        if value is not None:
            return value
    return None


class MutationRunner:
    """Executes writes against the API and keeps the cache consistent."""

    def __init__(
        self,
        cache: ReactiveCache,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[PayloadValidator] = None,
        scope_store: Optional[AccountScopeStore] = None,
    ):
        self._cache = cache
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or PayloadValidator()
        self._scope = scope_store

    async def run(self, mutation: Mutation, send: Callable[[], Awaitable[T]]) -> T:
        """
        Execute a mutation.

        Args:
            mutation: Description of the write
            send: Zero-argument coroutine function performing the request

        Returns:
            The server's response

        Raises:
            ValidationError: Payload rejected locally (no request made)
            SpendSyncError: The request failed; nothing was invalidated unless
                the error carries INVALID_RESPONSE_CODE
        """
        description = mutation.describe()
        domain = mutation.domain.value

        try:
            self._validator.check(mutation)
        except ValidationError as e:
            self._audit.log_mutation_rejected_locally(domain, description, list(e.field_errors()))
            raise

        correlation_id = create_correlation_id()
        try:
            result = await send()
        except Exception as e:
            self._audit.log_mutation_failed(domain, description, mutation.entity_id, e, correlation_id)
            if isinstance(e, SpendSyncError) and e.code == INVALID_RESPONSE_CODE:
                apply_plan(self._cache, on_mutation_success(mutation), self._audit, correlation_id)
            raise

        self._audit.log_mutation_succeeded(domain, description, mutation.entity_id, correlation_id)

        plan = on_mutation_success(mutation, result)
        apply_plan(self._cache, plan, self._audit, correlation_id)
        self._apply_scope_effects(mutation, result)
        return result

    def _apply_scope_effects(self, mutation: Mutation, result: Any) -> None:
        if self._scope is None or mutation.domain != Domain.ACCOUNTS:
            return

        if mutation.kind == MutationKind.ACTIVATE:
            account_id = _field(result, "id") or mutation.entity_id
            if account_id:
                self._scope.set_active_account(str(account_id))

        elif mutation.kind == MutationKind.CREATE:
            account_id = _field(result, "id")
            is_active = _field(result, "is_active", "isActive")
            if account_id and is_active and not self._scope.active_account_id:
                self._scope.set_active_account(str(account_id))

        elif mutation.kind == MutationKind.DELETE:
            if self._scope.active_account_id in mutation.target_ids:
                self._scope.clear_active_account()
