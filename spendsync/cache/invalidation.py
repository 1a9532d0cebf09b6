"""
Invalidation Policy

Pure mapping from a successful mutation to the cache changes it requires.

DESIGN DECISION: The policy only DESCRIBES what must change
(InvalidationPlan); apply_plan() is the single place that touches the
cache. Screens never invalidate anything themselves, so every
consistency rule lives here and can be tested without a network.

Rules:
- create/update/delete on a domain invalidates that domain's list prefix
  (for transactions: only the lists of the owning account, when known)
- update patches the entity's detail key with the server-confirmed result
- delete evicts the detail key (bulk delete: one per id)
- transaction writes invalidate home and statistics of the owning account;
  an update or delete whose previous owner is unknown refreshes every
  account
- seeding default categories invalidates the whole categories domain
- account activation patches the detail and refreshes lists and "active"
- deleting an account drops every account-scoped region of that account
- category and tag changes refresh transaction lists that embed them

A failed mutation produces no plan at all.
"""

from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from spendsync.audit import AuditLogger
from spendsync.cache.keys import (
    DomainKeys,
    KeyPrefix,
    QueryKey,
    account_keys,
    category_keys,
    home_keys,
    statistics_keys,
    tag_keys,
    transaction_keys,
)
from spendsync.cache.store import ReactiveCache
from spendsync.models.audit import AuditEventType
from spendsync.models.query import Domain, Mutation, MutationKind


_DOMAIN_KEYS: dict[Domain, DomainKeys] = {
    Domain.ACCOUNTS: account_keys,
    Domain.CATEGORIES: category_keys,
    Domain.TRANSACTIONS: transaction_keys,
    Domain.TAGS: tag_keys,
    Domain.HOME: home_keys,
    Domain.STATISTICS: statistics_keys,
}

_WRITE_KINDS = frozenset({
    MutationKind.CREATE,
    MutationKind.UPDATE,
    MutationKind.DELETE,
    MutationKind.BULK_DELETE,
    MutationKind.ACTIVATE,
})


class InvalidationPlan(BaseModel):
    """Cache changes required after one successful mutation."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    prefixes: set[KeyPrefix] = Field(default_factory=set)
    patches: dict[QueryKey, Any] = Field(default_factory=dict)
    evictions: set[QueryKey] = Field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not (self.prefixes or self.patches or self.evictions)

    def invalidates(self, prefix: KeyPrefix) -> bool:
        return prefix in self.prefixes


def _result_field(result: Any, *names: str) -> Optional[Any]:
    """Read a field from a dict or model result, trying each name in turn."""
    if result is None:
        return None
    for name in names:
        if isinstance(result, dict) and result.get(name) is not None:
            return result[name]
        value = getattr(result, name, None)
        if value is not None:
            return value
    return None


def _owning_accounts(mutation: Mutation, result: Any) -> list[str]:
    """Accounts whose aggregates a transaction write touches (old and new on a move)."""
    accounts = []
    for candidate in (
        mutation.account_id,
        mutation.payload.get("accountId"),
        _result_field(result, "accountId", "account_id"),
    ):
        if candidate and candidate not in accounts:
            accounts.append(str(candidate))
    return accounts


def _account_scoped(account_id: str) -> list[KeyPrefix]:
    return [
        transaction_keys.scoped(account_id),
        home_keys.scoped(account_id),
        statistics_keys.scoped(account_id),
    ]


def on_mutation_success(mutation: Mutation, result: Any = None) -> InvalidationPlan:
    """
    Compute the cache changes for a mutation the server has confirmed.

    Args:
        mutation: The write that succeeded
        result: The server's response body (used for detail patches)

    Returns:
        InvalidationPlan with prefixes to invalidate, details to patch
        and details to evict
    """
    plan = InvalidationPlan()
    keys = _DOMAIN_KEYS[mutation.domain]
    accounts = []
    if mutation.domain == Domain.TRANSACTIONS:
        if mutation.account_id or mutation.kind == MutationKind.CREATE:
            accounts = _owning_accounts(mutation, result)

    if mutation.kind in _WRITE_KINDS:
        if accounts:
            for account_id in accounts:
                plan.prefixes.add(keys.lists({"accountId": account_id}))
        else:
            plan.prefixes.add(keys.lists())

    if mutation.kind in (MutationKind.UPDATE, MutationKind.ACTIVATE):
        entity_id = _result_field(result, "id") or mutation.entity_id
        if entity_id and result is not None:
            plan.patches[keys.detail(str(entity_id))] = result
        elif entity_id:
            plan.prefixes.add(KeyPrefix(*keys.detail(str(entity_id))))

    if mutation.kind in (MutationKind.DELETE, MutationKind.BULK_DELETE):
        for entity_id in mutation.target_ids:
            plan.evictions.add(keys.detail(entity_id))

    if mutation.kind == MutationKind.SEED:
        plan.prefixes.add(keys.all())

    if mutation.domain == Domain.TRANSACTIONS and mutation.kind in _WRITE_KINDS:
        for account_id in accounts:
            plan.prefixes.add(home_keys.scoped(account_id))
            plan.prefixes.add(statistics_keys.scoped(account_id))
        if not accounts:
            plan.prefixes.add(home_keys.all())
            plan.prefixes.add(statistics_keys.all())

    if mutation.domain == Domain.ACCOUNTS:
        _plan_account_rules(mutation, result, plan)

    if mutation.domain in (Domain.CATEGORIES, Domain.TAGS) and mutation.kind in (
        MutationKind.UPDATE,
        MutationKind.DELETE,
    ):
        plan.prefixes.add(transaction_keys.lists())

    return plan


def _plan_account_rules(mutation: Mutation, result: Any, plan: InvalidationPlan) -> None:
    if mutation.kind == MutationKind.ACTIVATE:
        plan.prefixes.add(KeyPrefix(*account_keys.active()))
    elif mutation.kind == MutationKind.UPDATE and _result_field(result, "isActive", "is_active"):
        plan.prefixes.add(KeyPrefix(*account_keys.active()))
    elif mutation.kind == MutationKind.CREATE and _result_field(result, "isActive", "is_active"):
        plan.prefixes.add(KeyPrefix(*account_keys.active()))
    elif mutation.kind == MutationKind.DELETE:
        plan.prefixes.add(KeyPrefix(*account_keys.active()))
        for account_id in mutation.target_ids:
            plan.prefixes.update(_account_scoped(account_id))


def apply_plan(
    cache: ReactiveCache,
    plan: InvalidationPlan,
    audit_logger: Optional[AuditLogger] = None,
    correlation_id: Optional[UUID] = None,
) -> list[QueryKey]:
    """
    Apply a plan to the cache: patches first, then evictions, then
    invalidations (which refetch active readers).

    Returns:
        Every key that was touched
    """
    touched: list[QueryKey] = []

    for key, data in plan.patches.items():
        cache.patch(key, data)
        touched.append(key)

    evicted = [key for key in plan.evictions if cache.evict(key)]
    touched.extend(evicted)

    invalidated: list[QueryKey] = []
    for prefix in sorted(plan.prefixes, key=lambda p: p.label):
        for key in cache.invalidate(prefix):
            if key in plan.patches:
                continue
            invalidated.append(key)
    touched.extend(invalidated)

    if audit_logger is not None:
        audit_logger.log_cache_changed(
            AuditEventType.CACHE_PATCHED, [k.label for k in plan.patches], correlation_id
        )
        audit_logger.log_cache_changed(
            AuditEventType.CACHE_EVICTED, [k.label for k in evicted], correlation_id
        )
        audit_logger.log_cache_changed(
            AuditEventType.CACHE_INVALIDATED, [k.label for k in invalidated], correlation_id
        )
    return touched
