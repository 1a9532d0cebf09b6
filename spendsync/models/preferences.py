"""
Persisted State Models

Records kept in local key-value storage across restarts. Each record is
flat and lives under its own namespace; none of them reference each other.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    JPY = "JPY"
    CAD = "CAD"
    AUD = "AUD"
    CHF = "CHF"
    CNY = "CNY"
    INR = "INR"
    MXN = "MXN"


CURRENCY_NAMES: dict[Currency, str] = {
    Currency.USD: "US Dollar",
    Currency.EUR: "Euro",
    Currency.GBP: "British Pound",
    Currency.JPY: "Japanese Yen",
    Currency.CAD: "Canadian Dollar",
    Currency.AUD: "Australian Dollar",
    Currency.CHF: "Swiss Franc",
    Currency.CNY: "Chinese Yuan",
    Currency.INR: "Indian Rupee",
    Currency.MXN: "Mexican Peso",
}


class DateFormat(str, Enum):
    MM_DD_YYYY = "MM/DD/YYYY"
    DD_MM_YYYY = "DD/MM/YYYY"
    YYYY_MM_DD = "YYYY-MM-DD"


class DayOfWeek(int, Enum):
    """Sunday = 0, as stored by the mobile client."""
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


BUDGET_THRESHOLDS = (50, 75, 80, 90, 100)


class AppLockTimeout(str, Enum):
    IMMEDIATELY = "immediately"
    ONE_MINUTE = "1min"
    FIVE_MINUTES = "5min"
    NEVER = "never"


APP_LOCK_TIMEOUT_MS: dict[AppLockTimeout, int] = {
    AppLockTimeout.ONE_MINUTE: 60_000,
    AppLockTimeout.FIVE_MINUTES: 300_000,
}


class ReminderTime(BaseModel):
    """Time of day, 24-hour."""

    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)


# =============================================================================
# RECORDS
# =============================================================================

class AccountScope(BaseModel):
    """The account every account-scoped read is bound to."""

    active_account_id: Optional[str] = Field(
        default=None,
        description="Selected account; None until the user picks or creates one"
    )


class UserPreferences(BaseModel):
    currency: Currency = Currency.USD
    date_format: DateFormat = DateFormat.MM_DD_YYYY


class NotificationPreferences(BaseModel):
    notifications_enabled: bool = False

    daily_reminder_enabled: bool = False
    daily_reminder_time: ReminderTime = Field(default_factory=lambda: ReminderTime(hour=20))

    weekly_summary_enabled: bool = False
    weekly_summary_day: DayOfWeek = DayOfWeek.SUNDAY
    weekly_summary_time: ReminderTime = Field(default_factory=lambda: ReminderTime(hour=10))

    budget_alerts_enabled: bool = False
    budget_alert_threshold: int = 80

    transaction_confirmations_enabled: bool = False

    @field_validator('budget_alert_threshold')
    @classmethod
    def validate_threshold(cls, v: int) -> int:
        if v not in BUDGET_THRESHOLDS:
            raise ValueError(f"Budget alert threshold must be one of {BUDGET_THRESHOLDS}")
        return v


class SecurityPreferences(BaseModel):
    biometrics_enabled: bool = False
    app_lock_enabled: bool = False
    app_lock_timeout: AppLockTimeout = AppLockTimeout.IMMEDIATELY
    last_background_timestamp: Optional[float] = Field(
        default=None,
        description="Epoch milliseconds when the app last went to the background"
    )
