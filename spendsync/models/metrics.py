"""
Derived Metric Models

Outputs of the metrics engine. All amounts are Decimal so that rounding
to currency minor units is exact.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from spendsync.models.resources import CategorySummary


class Trend(str, Enum):
    """Direction of a period-over-period change."""
    UP = "UP"
    DOWN = "DOWN"
    FLAT = "FLAT"


class MetricType(str, Enum):
    """What a metric measures; decides presentation polarity only."""
    EXPENSE = "expense"
    INCOME = "income"
    BALANCE = "balance"


class Intent(str, Enum):
    """How a trend should be styled."""
    FAVORABLE = "favorable"
    ADVERSE = "adverse"
    NEUTRAL = "neutral"


class BalanceSign(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    ZERO = "zero"


class Granularity(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class PeriodWindow(BaseModel):
    """Inclusive date range used by home and statistics derivations."""

    start: date
    end: date
    granularity: Granularity = Granularity.DAY

    @model_validator(mode='after')
    def validate_range(self) -> 'PeriodWindow':
        if self.end < self.start:
            raise ValueError("Period end cannot be before start")
        return self

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


class DerivedMetric(BaseModel):
    """
    Period-over-period comparison of one total.

    change_percentage is relative to |previous_total|, rounded to one
    decimal. When previous_total is zero and current_total is not, the
    growth is unbounded: is_unbounded is set and the percentage is clamped
    to +/-100.0.
    """

    current_total: Decimal
    previous_total: Decimal
    change_amount: Decimal
    change_percentage: Decimal
    trend: Trend
    is_unbounded: bool = False


class PeriodSummary(BaseModel):
    """Income/expense subtotals for one window."""

    window: PeriodWindow
    total_income: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    net_balance: Decimal = Decimal("0.00")
    income_count: int = Field(default=0, ge=0)
    expense_count: int = Field(default=0, ge=0)
    days_with_transactions: int = Field(default=0, ge=0)

    @property
    def transaction_count(self) -> int:
        return self.income_count + self.expense_count


class DaySummary(BaseModel):
    """One day of a week strip."""

    day: date
    income_total: Decimal = Decimal("0.00")
    expense_total: Decimal = Decimal("0.00")
    transaction_count: int = 0

    @property
    def has_transactions(self) -> bool:
        return self.transaction_count > 0


class BalanceBar(BaseModel):
    """
    How much of the income has been spent.

    expense_percentage is None when income is zero but there are expenses;
    that case is reported as unbounded ("100%+") instead of dividing by zero.
    """

    income: Decimal
    expenses: Decimal
    net_amount: Decimal
    is_overspent: bool
    expense_percentage: Optional[Decimal] = None
    remaining_percentage: Decimal = Decimal("0.0")
    overage_percentage: Optional[Decimal] = None
    over_by: Decimal = Decimal("0.00")
    is_unbounded: bool = False


class CategoryShare(BaseModel):
    """A category's share of total expenses."""

    category: CategorySummary
    amount: Decimal
    percentage: Decimal
    transaction_count: int


class PeriodComparison(BaseModel):
    """Current vs previous window, as shown on the monthly card."""

    current: PeriodSummary
    previous: PeriodSummary
    expenses: DerivedMetric
    income: DerivedMetric
    net_balance: DerivedMetric
