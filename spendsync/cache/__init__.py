"""
Cache Package

Query keys, the reactive cache and the invalidation rules that keep it
consistent after writes.
"""

from spendsync.cache.invalidation import InvalidationPlan, apply_plan, on_mutation_success
from spendsync.cache.keys import (
    KeyPrefix,
    QueryKey,
    account_keys,
    category_keys,
    home_keys,
    key_as_prefix,
    make_key,
    make_prefix,
    statistics_keys,
    tag_keys,
    transaction_keys,
)
from spendsync.cache.store import CacheError, ReactiveCache, default_stale_after_ms

__all__ = [
    # Keys
    "KeyPrefix",
    "QueryKey",
    "make_key",
    "make_prefix",
    "key_as_prefix",
    "account_keys",
    "category_keys",
    "transaction_keys",
    "tag_keys",
    "home_keys",
    "statistics_keys",
    # Store
    "CacheError",
    "ReactiveCache",
    "default_stale_after_ms",
    # Invalidation
    "InvalidationPlan",
    "apply_plan",
    "on_mutation_success",
]
