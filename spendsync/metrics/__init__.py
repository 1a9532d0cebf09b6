"""
Metrics Package

Trend, balance and period derivations for the home and statistics views.
"""

from spendsync.metrics.engine import (
    UNBOUNDED_PERCENTAGE,
    UNCATEGORIZED,
    balance_sign,
    balance_trend,
    bucket_by_day,
    compare_periods,
    compute_balance_bar,
    compute_trend,
    round_amount,
    round_percentage,
    summarize_period,
    to_decimal,
    top_categories,
    trend_intent,
)
from spendsync.metrics.periods import (
    CompareWith,
    DateRangePreset,
    comparison_window,
    day_window,
    month_window,
    next_window,
    previous_window,
    resolve_preset,
    week_window,
    window_for,
    year_window,
)

__all__ = [
    # Engine
    "UNBOUNDED_PERCENTAGE",
    "UNCATEGORIZED",
    "balance_sign",
    "balance_trend",
    "bucket_by_day",
    "compare_periods",
    "compute_balance_bar",
    "compute_trend",
    "round_amount",
    "round_percentage",
    "summarize_period",
    "to_decimal",
    "top_categories",
    "trend_intent",
    # Periods
    "CompareWith",
    "DateRangePreset",
    "comparison_window",
    "day_window",
    "month_window",
    "next_window",
    "previous_window",
    "resolve_preset",
    "week_window",
    "window_for",
    "year_window",
]
