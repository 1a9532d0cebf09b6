"""
Metrics Engine

Derives display-ready indicators from raw totals and transactions.

DESIGN DECISION: The engine is polarity-neutral. compute_trend() only
reports UP/DOWN/FLAT and the magnitude of the change; whether "UP" is
good or bad news is decided by trend_intent() from the metric type, at
presentation time.

Rounding:
- Amounts are rounded to currency minor units (2 decimals, half-up)
- Percentages are rounded to 1 decimal (half-up)

Division by zero never happens. A change from a zero previous total is
reported as unbounded growth (is_unbounded=True, percentage clamped to
+/-100.0). A zero income with nonzero expenses yields a balance bar with
no expense percentage and is_unbounded=True.
"""

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Union

from spendsync.metrics.periods import days_in
from spendsync.models.metrics import (
    BalanceBar,
    BalanceSign,
    CategoryShare,
    DaySummary,
    DerivedMetric,
    Intent,
    MetricType,
    PeriodComparison,
    PeriodSummary,
    PeriodWindow,
    Trend,
)
from spendsync.models.resources import CategorySummary, Transaction, TransactionType


Number = Union[Decimal, int, float, str]

AMOUNT_QUANTUM = Decimal("0.01")
PERCENT_QUANTUM = Decimal("0.1")
HUNDRED = Decimal("100")
UNBOUNDED_PERCENTAGE = Decimal("100.0")

UNCATEGORIZED = CategorySummary(id="uncategorized", name="Uncategorized")


# =============================================================================
# NUMERIC HELPERS
# =============================================================================

def to_decimal(value: Optional[Number]) -> Decimal:
    """
    Convert an API number to Decimal.

    Floats go through str() so that 0.1 stays 0.1. None counts as zero.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {value!r}") from e


def round_amount(value: Number) -> Decimal:
    return to_decimal(value).quantize(AMOUNT_QUANTUM, rounding=ROUND_HALF_UP)


def round_percentage(value: Number) -> Decimal:
    return to_decimal(value).quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


# =============================================================================
# TRENDS
# =============================================================================

def trend_of(change: Decimal) -> Trend:
    if change > 0:
        return Trend.UP
    if change < 0:
        return Trend.DOWN
    return Trend.FLAT


def compute_trend(current: Number, previous: Number) -> DerivedMetric:
    """
    Compare two period totals.

    Args:
        current: Total of the current period
        previous: Total of the period it is compared with

    Returns:
        DerivedMetric. The trend is FLAT iff the totals are equal, UP iff
        current is greater. The percentage is relative to |previous| and
        never rounds to zero for a non-zero change.
    """
    current_value = to_decimal(current)
    previous_value = to_decimal(previous)
    change = current_value - previous_value
    trend = trend_of(change)

    is_unbounded = False
    if previous_value == 0:
        if change == 0:
            percentage = Decimal("0.0")
        else:
            is_unbounded = True
            percentage = UNBOUNDED_PERCENTAGE if change > 0 else -UNBOUNDED_PERCENTAGE
    else:
        percentage = round_percentage(change / abs(previous_value) * HUNDRED)
        if percentage == 0 and change != 0:
            # Smallest shown step, keeping the sign of the change.
            percentage = PERCENT_QUANTUM if change > 0 else -PERCENT_QUANTUM

    return DerivedMetric(
        current_total=round_amount(current_value),
        previous_total=round_amount(previous_value),
        change_amount=round_amount(change),
        change_percentage=percentage,
        trend=trend,
        is_unbounded=is_unbounded,
    )


def trend_intent(trend: Trend, metric_type: MetricType) -> Intent:
    """
    Presentation polarity of a trend.

    More spending is adverse; more income or balance is favorable.
    """
    if trend == Trend.FLAT:
        return Intent.NEUTRAL
    if metric_type == MetricType.EXPENSE:
        return Intent.ADVERSE if trend == Trend.UP else Intent.FAVORABLE
    return Intent.FAVORABLE if trend == Trend.UP else Intent.ADVERSE


def balance_sign(amount: Number) -> BalanceSign:
    value = to_decimal(amount)
    if value > 0:
        return BalanceSign.POSITIVE
    if value < 0:
        return BalanceSign.NEGATIVE
    return BalanceSign.ZERO


def balance_trend(amount: Number) -> Trend:
    """A balance of exactly zero is FLAT, not a sign case."""
    return trend_of(to_decimal(amount))


# =============================================================================
# PERIOD DERIVATIONS
# =============================================================================

def _as_transaction(item: Any) -> Transaction:
    if isinstance(item, Transaction):
        return item
    return Transaction.model_validate(item)


def _in_window(transactions: Iterable[Any], window: Optional[PeriodWindow]) -> list[Transaction]:
    parsed = [_as_transaction(t) for t in transactions]
    if window is None:
        return parsed
    return [t for t in parsed if window.contains(t.date)]


def summarize_period(transactions: Iterable[Any], window: PeriodWindow) -> PeriodSummary:
    """
    Partition the transactions falling inside window into income and
    expense subtotals.
    """
    income = Decimal("0")
    expenses = Decimal("0")
    income_count = 0
    expense_count = 0
    days = set()

    for transaction in _in_window(transactions, window):
        days.add(transaction.date)
        if transaction.type == TransactionType.INCOME:
            income += transaction.amount
            income_count += 1
        else:
            expenses += transaction.amount
            expense_count += 1

    return PeriodSummary(
        window=window,
        total_income=round_amount(income),
        total_expenses=round_amount(expenses),
        net_balance=round_amount(income - expenses),
        income_count=income_count,
        expense_count=expense_count,
        days_with_transactions=len(days),
    )


def compute_balance_bar(income: Number, expenses: Number) -> BalanceBar:
    """
    Share of income already spent.

    - income > 0: expense_percentage = expenses / income * 100
    - income == 0, expenses > 0: unbounded, no percentage ("100%+")
    - both zero: 0% spent, 100% remaining
    """
    income_value = round_amount(income)
    expense_value = round_amount(expenses)
    net = income_value - expense_value
    is_overspent = expense_value > income_value

    expense_percentage: Optional[Decimal]
    overage: Optional[Decimal] = None
    is_unbounded = False

    if income_value > 0:
        expense_percentage = round_percentage(expense_value / income_value * HUNDRED)
        remaining = max(Decimal("0.0"), HUNDRED - expense_percentage)
        if is_overspent:
            overage = round_percentage(expense_percentage - HUNDRED)
    elif expense_value > 0:
        expense_percentage = None
        remaining = Decimal("0.0")
        is_unbounded = True
    else:
        expense_percentage = Decimal("0.0")
        remaining = HUNDRED

    return BalanceBar(
        income=income_value,
        expenses=expense_value,
        net_amount=net,
        is_overspent=is_overspent,
        expense_percentage=expense_percentage,
        remaining_percentage=round_percentage(remaining),
        overage_percentage=overage,
        over_by=abs(net) if is_overspent else Decimal("0.00"),
        is_unbounded=is_unbounded,
    )


def compare_periods(current: PeriodSummary, previous: PeriodSummary) -> PeriodComparison:
    return PeriodComparison(
        current=current,
        previous=previous,
        expenses=compute_trend(current.total_expenses, previous.total_expenses),
        income=compute_trend(current.total_income, previous.total_income),
        net_balance=compute_trend(current.net_balance, previous.net_balance),
    )


def bucket_by_day(transactions: Iterable[Any], window: PeriodWindow) -> list[DaySummary]:
    """One DaySummary per day of window, in order, including empty days."""
    income: dict = defaultdict(Decimal)
    expenses: dict = defaultdict(Decimal)
    counts: dict = defaultdict(int)

    for transaction in _in_window(transactions, window):
        if transaction.type == TransactionType.INCOME:
            income[transaction.date] += transaction.amount
        else:
            expenses[transaction.date] += transaction.amount
        counts[transaction.date] += 1

    return [
        DaySummary(
            day=day,
            income_total=round_amount(income[day]),
            expense_total=round_amount(expenses[day]),
            transaction_count=counts[day],
        )
        for day in days_in(window)
    ]


def top_categories(
    transactions: Iterable[Any],
    limit: int = 5,
    window: Optional[PeriodWindow] = None,
) -> list[CategoryShare]:
    """
    Largest expense categories with their share of total expenses.

    Ties on amount are broken by category name so the order is stable.
    """
    totals: dict[str, Decimal] = defaultdict(Decimal)
    counts: dict[str, int] = defaultdict(int)
    categories: dict[str, CategorySummary] = {}

    for transaction in _in_window(transactions, window):
        if transaction.type != TransactionType.EXPENSE:
            continue
        category = transaction.category
        if category is None and transaction.category_id:
            category = CategorySummary(id=transaction.category_id, name=transaction.category_id)
        category = category or UNCATEGORIZED
        categories.setdefault(category.id, category)
        totals[category.id] += transaction.amount
        counts[category.id] += 1

    grand_total = sum(totals.values(), Decimal("0"))
    if grand_total == 0:
        return []

    ranked = sorted(totals, key=lambda cid: (-totals[cid], categories[cid].name))
    return [
        CategoryShare(
            category=categories[cid],
            amount=round_amount(totals[cid]),
            percentage=round_percentage(totals[cid] / grand_total * HUNDRED),
            transaction_count=counts[cid],
        )
        for cid in ranked[:limit]
    ]
