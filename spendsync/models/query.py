"""
Cache and Mutation Models

CacheEntry is the single unit of state held by the reactive cache.
Mutation describes a write for the short time it takes to send it and
apply its invalidation side effects; it is never persisted.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Domain(str, Enum):
    """Top-level resource families; first element of every query key."""
    ACCOUNTS = "accounts"
    CATEGORIES = "categories"
    TRANSACTIONS = "transactions"
    TAGS = "tags"
    HOME = "home"
    STATISTICS = "statistics"


# Domains whose reads are meaningless without an account id.
ACCOUNT_SCOPED_DOMAINS = frozenset({Domain.TRANSACTIONS, Domain.HOME, Domain.STATISTICS})


class CacheStatus(str, Enum):
    """Lifecycle of a cache entry: idle -> loading -> success | error."""
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class QueryStatus(str, Enum):
    """
    Status reported to readers.

    UNSCOPED is not a cache state: it means no request was made because
    the read needs an account and none is selected.
    """
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    UNSCOPED = "unscoped"


class CacheEntry(BaseModel):
    """
    Cached data for one query key.

    Owned by ReactiveCache. Subscribers receive copies.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: Any = Field(
        ...,
        description="QueryKey this entry is stored under"
    )
    data: Any = Field(
        default=None,
        description="Last successfully fetched (or patched) value"
    )
    has_data: bool = Field(
        default=False,
        description="Distinguishes 'no data yet' from a legitimate None payload"
    )
    status: CacheStatus = CacheStatus.IDLE
    fetched_at: Optional[float] = Field(
        default=None,
        description="Clock time (ms) of the last successful fetch or patch"
    )
    stale_after_ms: int = Field(
        default=0,
        ge=0,
        description="Age after which the entry is revalidated"
    )
    error: Optional[Exception] = Field(
        default=None,
        description="Error of the last failed fetch"
    )
    is_invalidated: bool = Field(
        default=False,
        description="Marked stale by an invalidation regardless of age"
    )
    last_accessed_at: Optional[float] = None

    def is_stale(self, now_ms: float) -> bool:
        """An entry is stale if invalidated, never fetched, or too old."""
        if self.is_invalidated or self.fetched_at is None:
            return True
        return now_ms - self.fetched_at >= self.stale_after_ms

    @property
    def is_fetching(self) -> bool:
        return self.status == CacheStatus.LOADING


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    BULK_DELETE = "bulk_delete"
    ACTIVATE = "activate"
    SEED = "seed"


class Mutation(BaseModel):
    """A write against one resource domain."""

    domain: Domain
    kind: MutationKind
    entity_id: Optional[str] = Field(
        default=None,
        description="Target entity for update/delete/activate"
    )
    entity_ids: list[str] = Field(
        default_factory=list,
        description="Targets of a bulk delete"
    )
    account_id: Optional[str] = Field(
        default=None,
        description="Owning account, for account-scoped side effects"
    )
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def target_ids(self) -> list[str]:
        ids = list(self.entity_ids)
        if self.entity_id and self.entity_id not in ids:
            ids.insert(0, self.entity_id)
        return ids

    def describe(self) -> str:
        target = f" {self.entity_id}" if self.entity_id else ""
        return f"{self.kind.value} {self.domain.value}{target}"


class QueryState(BaseModel):
    """
    What a reader sees for one query.

    Built from a CacheEntry, or directly as UNSCOPED when the read needs
    an account and none is selected (no entry and no request exist then).
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: Any = None
    status: QueryStatus = QueryStatus.IDLE
    data: Any = None
    has_data: bool = False
    error: Optional[Exception] = None
    is_stale: bool = False
    is_fetching: bool = False
    fetched_at: Optional[float] = None

    @property
    def is_unscoped(self) -> bool:
        return self.status == QueryStatus.UNSCOPED

    @property
    def is_error(self) -> bool:
        return self.status == QueryStatus.ERROR

    @classmethod
    def unscoped(cls) -> "QueryState":
        return cls(status=QueryStatus.UNSCOPED)

    @classmethod
    def from_entry(cls, entry: CacheEntry, is_stale: bool) -> "QueryState":
        return cls(
            key=entry.key,
            status=QueryStatus(entry.status.value),
            data=entry.data,
            has_data=entry.has_data,
            error=entry.error,
            is_stale=is_stale,
            is_fetching=entry.is_fetching,
            fetched_at=entry.fetched_at,
        )
