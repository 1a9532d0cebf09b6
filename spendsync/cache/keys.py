"""
Query Key Registry

Deterministic, hierarchical identifiers for every fetchable resource.

A QueryKey is (domain, operation, params) where params is a canonical,
order-independent tuple of (name, value) pairs. Two requests with the same
parameters by value always produce the same key, whatever order the
parameters were supplied in.

DESIGN DECISION: Parameters whose value is None are dropped. An absent
filter and a filter explicitly set to None describe the same request, so
they must share a cache entry.

Hierarchy is expressed through KeyPrefix: a prefix matches every key of
its domain, of its operation (when given) and whose params include the
prefix params. (accounts, list, {}) therefore matches
(accounts, list, {type: "EXPENSE"}), and
(home, None, {accountId: "a1"}) matches every home key of account a1.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, NamedTuple, Optional, Union

from spendsync.models.query import Domain


Params = Optional[Mapping[str, Any]]


def _canonical_value(value: Any) -> Any:
    """Convert a parameter value to a hashable, order-independent form."""
    if isinstance(value, Enum):
        return _canonical_value(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Mapping):
        return tuple(sorted(
            (str(k), _canonical_value(v)) for k, v in value.items() if v is not None
        ))
    if isinstance(value, (list, tuple)):
        return tuple(_canonical_value(v) for v in value)
    if isinstance(value, (set, frozenset)):
        return tuple(sorted(_canonical_value(v) for v in value))
    return value


def canonical_params(params: Params) -> tuple:
    """Sorted ((name, value), ...) with None-valued entries removed."""
    if not params:
        return ()
    return _canonical_value(dict(params))


def _jsonable(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_jsonable(v) for v in value]
    return value


class QueryKey(NamedTuple):
    """Cache index for one resource + parameter combination."""

    domain: str
    operation: str
    params: tuple = ()

    @property
    def params_hash(self) -> str:
        """SHA-256 of the canonical JSON encoding of params."""
        encoded = json.dumps(_jsonable(self.params), separators=(",", ":"), default=str)
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()

    @property
    def params_dict(self) -> dict[str, Any]:
        return {name: value for name, value in self.params}

    def param(self, name: str, default: Any = None) -> Any:
        for key, value in self.params:
            if key == name:
                return value
        return default

    @property
    def label(self) -> str:
        """Short human-readable form for logs."""
        if not self.params:
            return f"{self.domain}/{self.operation}"
        rendered = ",".join(f"{k}={v}" for k, v in self.params)
        return f"{self.domain}/{self.operation}?{rendered}"


class KeyPrefix(NamedTuple):
    """Partial query key used to address a region of the cache."""

    domain: str
    operation: Optional[str] = None
    params: tuple = ()

    def matches(self, key: QueryKey) -> bool:
        if key.domain != self.domain:
            return False
        if self.operation is not None and key.operation != self.operation:
            return False
        if not self.params:
            return True
        key_params = key.params_dict
        return all(
            name in key_params and key_params[name] == value
            for name, value in self.params
        )

    @property
    def label(self) -> str:
        parts = [self.domain]
        if self.operation is not None:
            parts.append(self.operation)
        label = "/".join(parts)
        if self.params:
            label += "?" + ",".join(f"{k}={v}" for k, v in self.params)
        return label


def _domain_value(domain: Union[Domain, str]) -> str:
    return domain.value if isinstance(domain, Domain) else str(domain)


def make_key(domain: Union[Domain, str], operation: str, params: Params = None) -> QueryKey:
    """
    Build the query key for a request.

    Pure and total: equal params by value give equal keys.
    """
    return QueryKey(_domain_value(domain), operation, canonical_params(params))


def make_prefix(
    domain: Union[Domain, str],
    operation: Optional[str] = None,
    params: Params = None,
) -> KeyPrefix:
    return KeyPrefix(_domain_value(domain), operation, canonical_params(params))


def key_as_prefix(key: QueryKey) -> KeyPrefix:
    """A key viewed as the prefix that matches exactly its own family."""
    return KeyPrefix(key.domain, key.operation, key.params)


# =============================================================================
# PER-DOMAIN KEY BUILDERS
# =============================================================================

class DomainKeys:
    """
    Key builders shared by every CRUD domain.

    all()     -> every key of the domain
    lists()   -> every list variant
    list(p)   -> one list variant
    details() -> every detail
    detail(i) -> one entity
    """

    def __init__(self, domain: Domain):
        self.domain = domain

    def all(self) -> KeyPrefix:
        return make_prefix(self.domain)

    def lists(self, params: Params = None) -> KeyPrefix:
        return make_prefix(self.domain, "list", params)

    def list(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "list", params)

    def details(self) -> KeyPrefix:
        return make_prefix(self.domain, "detail")

    def detail(self, entity_id: str) -> QueryKey:
        return make_key(self.domain, "detail", {"id": entity_id})

    def operation(self, name: str, params: Params = None) -> QueryKey:
        return make_key(self.domain, name, params)

    def scoped(self, account_id: str) -> KeyPrefix:
        """Every key of the domain bound to one account."""
        return make_prefix(self.domain, None, {"accountId": account_id})


class AccountKeys(DomainKeys):
    def __init__(self):
        super().__init__(Domain.ACCOUNTS)

    def active(self) -> QueryKey:
        return make_key(self.domain, "active")


class CategoryKeys(DomainKeys):
    def __init__(self):
        super().__init__(Domain.CATEGORIES)

    def icons(self) -> QueryKey:
        return make_key(self.domain, "icons")

    def colors(self) -> QueryKey:
        return make_key(self.domain, "colors")


class HomeKeys(DomainKeys):
    def __init__(self):
        super().__init__(Domain.HOME)

    def daily(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "daily", params)

    def week(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "week", params)

    def monthly(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "monthly", params)

    def balance_bar(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "balance-bar", params)

    def state(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "state", params)


class StatisticsKeys(DomainKeys):
    def __init__(self):
        super().__init__(Domain.STATISTICS)

    def overview(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "overview", params)

    def categories(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "categories", params)

    def time_series(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "time-series", params)

    def comparison(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "comparison", params)

    def category_trend(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "category-trend", params)

    def trends(self, params: Params = None) -> QueryKey:
        return make_key(self.domain, "trends", params)

    def presets(self) -> QueryKey:
        return make_key(self.domain, "presets")


account_keys = AccountKeys()
category_keys = CategoryKeys()
transaction_keys = DomainKeys(Domain.TRANSACTIONS)
tag_keys = DomainKeys(Domain.TAGS)
home_keys = HomeKeys()
statistics_keys = StatisticsKeys()
