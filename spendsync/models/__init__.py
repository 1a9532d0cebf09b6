"""
Data Models Package

This package contains all Pydantic models used by SpendSync.
Wire payloads, cache state, derived metrics and persisted client state
all conform to these schemas.
"""

from spendsync.models.resources import (
    Account,
    ApiModel,
    BulkDeleteResult,
    Category,
    CategorySummary,
    PageInfo,
    PageResponse,
    Tag,
    Transaction,
    TransactionType,
)
from spendsync.models.query import (
    ACCOUNT_SCOPED_DOMAINS,
    CacheEntry,
    CacheStatus,
    Domain,
    Mutation,
    MutationKind,
    QueryState,
    QueryStatus,
)
from spendsync.models.metrics import (
    BalanceBar,
    BalanceSign,
    CategoryShare,
    DaySummary,
    DerivedMetric,
    Granularity,
    Intent,
    MetricType,
    PeriodComparison,
    PeriodSummary,
    PeriodWindow,
    Trend,
)
from spendsync.models.preferences import (
    APP_LOCK_TIMEOUT_MS,
    BUDGET_THRESHOLDS,
    CURRENCY_NAMES,
    AccountScope,
    AppLockTimeout,
    Currency,
    DateFormat,
    DayOfWeek,
    NotificationPreferences,
    ReminderTime,
    SecurityPreferences,
    UserPreferences,
)
from spendsync.models.validation import ValidationIssue, ValidationResult
from spendsync.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Resource models
    "Account",
    "ApiModel",
    "BulkDeleteResult",
    "Category",
    "CategorySummary",
    "PageInfo",
    "PageResponse",
    "Tag",
    "Transaction",
    "TransactionType",
    # Cache and query models
    "ACCOUNT_SCOPED_DOMAINS",
    "CacheEntry",
    "CacheStatus",
    "Domain",
    "Mutation",
    "MutationKind",
    "QueryState",
    "QueryStatus",
    # Metric models
    "BalanceBar",
    "BalanceSign",
    "CategoryShare",
    "DaySummary",
    "DerivedMetric",
    "Granularity",
    "Intent",
    "MetricType",
    "PeriodComparison",
    "PeriodSummary",
    "PeriodWindow",
    "Trend",
    # Preference models
    "APP_LOCK_TIMEOUT_MS",
    "BUDGET_THRESHOLDS",
    "CURRENCY_NAMES",
    "AccountScope",
    "AppLockTimeout",
    "Currency",
    "DateFormat",
    "DayOfWeek",
    "NotificationPreferences",
    "ReminderTime",
    "SecurityPreferences",
    "UserPreferences",
    # Validation models
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
