"""
Tests for the metrics engine.

All arithmetic is Decimal; comparisons use Decimal literals so that a
float creeping in would fail loudly.
"""

import pytest
from datetime import date
from decimal import Decimal

from spendsync.metrics import (
    UNCATEGORIZED,
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
    balance_sign,
    balance_trend,
    week_window,
    month_window,
)
from spendsync.models.metrics import BalanceSign, Intent, MetricType, Trend
from spendsync.models.resources import Transaction


def tx(tx_id, amount, day, type_="EXPENSE", category=None, category_id=None):
    payload = {"id": tx_id, "type": type_, "amount": amount, "date": day}
    if category is not None:
        payload["category"] = category
    if category_id is not None:
        payload["categoryId"] = category_id
    return payload


class TestNumericHelpers:
    """Conversions and rounding."""

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_none_is_zero(self):
        assert to_decimal(None) == Decimal("0")

    def test_invalid_number_raises(self):
        with pytest.raises(ValueError):
            to_decimal("abc")

    def test_half_up_rounding(self):
        assert round_amount("2.675") == Decimal("2.68")
        assert round_amount("-2.675") == Decimal("-2.68")
        assert round_percentage("12.25") == Decimal("12.3")


class TestComputeTrend:
    """Period-over-period comparison."""

    def test_increase(self):
        metric = compute_trend(150, 100)
        assert metric.trend == Trend.UP
        assert metric.change_amount == Decimal("50.00")
        assert metric.change_percentage == Decimal("50.0")
        assert metric.is_unbounded is False

    def test_decrease(self):
        metric = compute_trend(75, 100)
        assert metric.trend == Trend.DOWN
        assert metric.change_percentage == Decimal("-25.0")

    def test_equal_is_flat(self):
        metric = compute_trend("42.10", Decimal("42.1"))
        assert metric.trend == Trend.FLAT
        assert metric.change_percentage == Decimal("0.0")

    def test_both_zero_is_flat_and_zero(self):
        metric = compute_trend(0, 0)
        assert metric.trend == Trend.FLAT
        assert metric.change_percentage == Decimal("0")
        assert metric.is_unbounded is False

    def test_growth_from_zero_is_flagged_unbounded(self):
        """Previous income 0, current 500: UP, flagged, no division by zero."""
        metric = compute_trend(500, 0)
        assert metric.trend == Trend.UP
        assert metric.is_unbounded is True
        assert metric.change_percentage == Decimal("100.0")
        assert metric.change_amount == Decimal("500.00")

    def test_drop_to_negative_from_zero(self):
        metric = compute_trend(-20, 0)
        assert metric.trend == Trend.DOWN
        assert metric.is_unbounded is True
        assert metric.change_percentage == Decimal("-100.0")

    def test_percentage_is_relative_to_absolute_previous(self):
        """A negative balance improving is an increase."""
        metric = compute_trend(-50, -100)
        assert metric.trend == Trend.UP
        assert metric.change_percentage == Decimal("50.0")

    def test_percentage_rounds_to_one_decimal(self):
        metric = compute_trend(100, 300)
        assert metric.change_percentage == Decimal("-66.7")

    def test_trend_uses_unrounded_values(self):
        metric = compute_trend("10.001", "10.000")
        assert metric.trend == Trend.UP
        assert metric.change_amount == Decimal("0.00")

    def test_tiny_change_on_large_total_keeps_its_sign(self):
        assert compute_trend("1000000.01", "1000000").change_percentage == Decimal("0.1")
        assert compute_trend("999999.99", "1000000").change_percentage == Decimal("-0.1")
        assert compute_trend("1000000", "1000000").change_percentage == Decimal("0.0")

    @pytest.mark.parametrize("current, previous", [
        (1, 2), (2, 1), (0, 5), (5, 0), (-3, 3), (3, -3), ("0.01", "0.02"),
        ("1000000.01", "1000000"), ("999999.99", "1000000"),
    ])
    def test_percentage_sign_matches_change(self, current, previous):
        metric = compute_trend(current, previous)
        change = Decimal(str(current)) - Decimal(str(previous))
        assert (metric.change_percentage > 0) == (change > 0)
        assert (metric.change_percentage < 0) == (change < 0)


class TestPolarity:
    """Presentation intent is applied after the computation."""

    def test_more_spending_is_adverse(self):
        assert trend_intent(Trend.UP, MetricType.EXPENSE) == Intent.ADVERSE
        assert trend_intent(Trend.DOWN, MetricType.EXPENSE) == Intent.FAVORABLE

    def test_more_income_is_favorable(self):
        assert trend_intent(Trend.UP, MetricType.INCOME) == Intent.FAVORABLE
        assert trend_intent(Trend.DOWN, MetricType.BALANCE) == Intent.ADVERSE

    def test_flat_is_neutral(self):
        assert trend_intent(Trend.FLAT, MetricType.EXPENSE) == Intent.NEUTRAL

    def test_zero_balance_is_flat(self):
        assert balance_trend(0) == Trend.FLAT
        assert balance_sign(0) == BalanceSign.ZERO
        assert balance_sign("-0.01") == BalanceSign.NEGATIVE
        assert balance_trend("12") == Trend.UP


class TestBalanceBar:
    """Share of income spent."""

    def test_overspent_account(self):
        """Income 100, expenses 150: over by 50.00, 150% spent."""
        bar = compute_balance_bar(100, 150)
        assert bar.is_overspent is True
        assert bar.over_by == Decimal("50.00")
        assert bar.expense_percentage == Decimal("150.0")
        assert bar.overage_percentage == Decimal("50.0")
        assert bar.remaining_percentage == Decimal("0.0")
        assert bar.net_amount == Decimal("-50.00")

    def test_within_budget(self):
        bar = compute_balance_bar("2000", "500.50")
        assert bar.is_overspent is False
        assert bar.expense_percentage == Decimal("25.0")
        assert bar.remaining_percentage == Decimal("75.0")
        assert bar.over_by == Decimal("0.00")
        assert bar.overage_percentage is None

    def test_expenses_without_income_are_unbounded(self):
        bar = compute_balance_bar(0, 20)
        assert bar.is_unbounded is True
        assert bar.expense_percentage is None
        assert bar.is_overspent is True
        assert bar.over_by == Decimal("20.00")

    def test_nothing_at_all(self):
        bar = compute_balance_bar(0, 0)
        assert bar.expense_percentage == Decimal("0.0")
        assert bar.remaining_percentage == Decimal("100.0")
        assert bar.is_overspent is False


class TestPeriodDerivations:
    """Summaries over transaction lists."""

    def test_summarize_period_only_counts_window(self):
        window = month_window(date(2026, 3, 10))
        summary = summarize_period([
            tx("t1", "10.50", "2026-03-01"),
            tx("t2", 100, "2026-03-31", "INCOME"),
            tx("t3", 5, "2026-03-31"),
            tx("t4", 999, "2026-04-01"),
        ], window)

        assert summary.total_expenses == Decimal("15.50")
        assert summary.total_income == Decimal("100.00")
        assert summary.net_balance == Decimal("84.50")
        assert summary.expense_count == 2
        assert summary.income_count == 1
        assert summary.transaction_count == 3
        assert summary.days_with_transactions == 2

    def test_accepts_models_and_dicts(self):
        window = week_window(date(2026, 3, 4))
        model = Transaction.model_validate(tx("t1", 1, "2026-03-04"))
        summary = summarize_period([model, tx("t2", 2, "2026-03-05")], window)
        assert summary.total_expenses == Decimal("3.00")

    def test_compare_periods(self):
        march = summarize_period([tx("t1", 500, "2026-03-02", "INCOME")], month_window(date(2026, 3, 1)))
        february = summarize_period([], month_window(date(2026, 2, 1)))

        comparison = compare_periods(march, february)

        assert comparison.income.trend == Trend.UP
        assert comparison.income.is_unbounded is True
        assert comparison.expenses.trend == Trend.FLAT
        assert comparison.net_balance.current_total == Decimal("500.00")

    def test_bucket_by_day_covers_every_day(self):
        window = week_window(date(2026, 3, 4))
        days = bucket_by_day([
            tx("t1", 4, "2026-03-03"),
            tx("t2", 6, "2026-03-03"),
            tx("t3", 50, "2026-03-05", "INCOME"),
        ], window)

        assert [d.day for d in days] == [date(2026, 3, 2 + i) for i in range(7)]
        tuesday = days[1]
        assert tuesday.expense_total == Decimal("10.00")
        assert tuesday.transaction_count == 2
        assert days[3].income_total == Decimal("50.00")
        assert not days[0].has_transactions


class TestTopCategories:
    """Expense share per category."""

    def test_ranked_with_percentages(self):
        food = {"id": "c1", "name": "Food"}
        rent = {"id": "c2", "name": "Rent"}
        shares = top_categories([
            tx("t1", 300, "2026-03-01", category=rent),
            tx("t2", 60, "2026-03-02", category=food),
            tx("t3", 40, "2026-03-03", category=food),
            tx("t4", 1000, "2026-03-03", "INCOME", category=food),
        ])

        assert [s.category.name for s in shares] == ["Rent", "Food"]
        assert shares[0].percentage == Decimal("75.0")
        assert shares[1].amount == Decimal("100.00")
        assert shares[1].transaction_count == 2

    def test_ties_are_broken_by_name(self):
        shares = top_categories([
            tx("t1", 10, "2026-03-01", category={"id": "b", "name": "Bills"}),
            tx("t2", 10, "2026-03-01", category={"id": "a", "name": "Auto"}),
        ])
        assert [s.category.name for s in shares] == ["Auto", "Bills"]

    def test_missing_category_is_grouped(self):
        shares = top_categories([
            tx("t1", 10, "2026-03-01"),
            tx("t2", 30, "2026-03-01", category_id="c9"),
        ])
        assert shares[0].category.id == "c9"
        assert shares[1].category == UNCATEGORIZED

    def test_limit_and_empty(self):
        many = [
            tx(f"t{i}", i + 1, "2026-03-01", category={"id": f"c{i}", "name": f"Cat {i}"})
            for i in range(8)
        ]
        assert len(top_categories(many, limit=3)) == 3
        assert top_categories([]) == []
        assert top_categories([tx("t1", 10, "2026-03-01", "INCOME")]) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
