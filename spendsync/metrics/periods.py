"""
Period Windows

Calendar-aligned date ranges for the home and statistics views.

Weeks start on Monday. Month windows always run from the 1st to the last
day of the month; nothing here produces a sliding month.
"""

from datetime import date, timedelta
from enum import Enum
from typing import Optional

from spendsync.models.metrics import Granularity, PeriodWindow


class DateRangePreset(str, Enum):
    THIS_WEEK = "THIS_WEEK"
    LAST_WEEK = "LAST_WEEK"
    THIS_MONTH = "THIS_MONTH"
    LAST_MONTH = "LAST_MONTH"
    THIS_YEAR = "THIS_YEAR"
    LAST_30_DAYS = "LAST_30_DAYS"
    LAST_90_DAYS = "LAST_90_DAYS"
    CUSTOM = "CUSTOM"


class CompareWith(str, Enum):
    PREVIOUS_PERIOD = "PREVIOUS_PERIOD"
    SAME_PERIOD_LAST_YEAR = "SAME_PERIOD_LAST_YEAR"


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _add_months(first_of_month: date, months: int) -> date:
    index = first_of_month.year * 12 + (first_of_month.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def _month_end(day: date) -> date:
    return _add_months(_month_start(day), 1) - timedelta(days=1)


def _shift_year(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # Feb 29 in a non-leap year
        return day.replace(year=day.year + years, day=28)


def _months_spanned(window: PeriodWindow) -> int:
    return (window.end.year - window.start.year) * 12 + window.end.month - window.start.month + 1


def is_month_aligned(window: PeriodWindow) -> bool:
    return window.start.day == 1 and window.end == _month_end(window.end)


# =============================================================================
# WINDOW CONSTRUCTORS
# =============================================================================

def day_window(day: date) -> PeriodWindow:
    return PeriodWindow(start=day, end=day, granularity=Granularity.DAY)


def week_window(day: date) -> PeriodWindow:
    """Monday..Sunday week containing day."""
    start = day - timedelta(days=day.weekday())
    return PeriodWindow(start=start, end=start + timedelta(days=6), granularity=Granularity.WEEK)


def month_window(day: date) -> PeriodWindow:
    """Calendar month containing day."""
    return PeriodWindow(start=_month_start(day), end=_month_end(day), granularity=Granularity.MONTH)


def year_window(day: date) -> PeriodWindow:
    return PeriodWindow(
        start=date(day.year, 1, 1),
        end=date(day.year, 12, 31),
        granularity=Granularity.MONTH,
    )


def window_for(day: date, granularity: Granularity) -> PeriodWindow:
    if granularity == Granularity.WEEK:
        return week_window(day)
    if granularity == Granularity.MONTH:
        return month_window(day)
    return day_window(day)


# =============================================================================
# NAVIGATION
# =============================================================================

def previous_window(window: PeriodWindow) -> PeriodWindow:
    """
    The window of equal calendar length immediately before window.

    Month-aligned windows move by whole months (so the previous window of
    March is all of February); anything else moves by its length in days.
    """
    if window.granularity == Granularity.MONTH and is_month_aligned(window):
        months = _months_spanned(window)
        start = _add_months(window.start, -months)
        end = _month_end(_add_months(window.start, -1))
        return PeriodWindow(start=start, end=end, granularity=window.granularity)
    shift = timedelta(days=window.days)
    return PeriodWindow(
        start=window.start - shift,
        end=window.end - shift,
        granularity=window.granularity,
    )


def next_window(window: PeriodWindow) -> PeriodWindow:
    if window.granularity == Granularity.MONTH and is_month_aligned(window):
        months = _months_spanned(window)
        start = _add_months(window.start, months)
        end = _month_end(_add_months(window.start, 2 * months - 1))
        return PeriodWindow(start=start, end=end, granularity=window.granularity)
    shift = timedelta(days=window.days)
    return PeriodWindow(
        start=window.start + shift,
        end=window.end + shift,
        granularity=window.granularity,
    )


def comparison_window(window: PeriodWindow, compare_with: CompareWith = CompareWith.PREVIOUS_PERIOD) -> PeriodWindow:
    """Window a period is compared against on the statistics screen."""
    if compare_with == CompareWith.SAME_PERIOD_LAST_YEAR:
        return PeriodWindow(
            start=_shift_year(window.start, -1),
            end=_shift_year(window.end, -1),
            granularity=window.granularity,
        )
    return previous_window(window)


def days_in(window: PeriodWindow) -> list[date]:
    return [window.start + timedelta(days=offset) for offset in range(window.days)]


# =============================================================================
# PRESETS
# =============================================================================

def resolve_preset(
    preset: DateRangePreset,
    *,
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
) -> PeriodWindow:
    """
    Turn a statistics date-range preset into a concrete window.

    Args:
        preset: One of DateRangePreset
        start: Required for CUSTOM
        end: Required for CUSTOM
        today: Reference date (defaults to date.today())

    Raises:
        ValueError: CUSTOM without both dates, or start after end
    """
    today = today or date.today()
    preset = DateRangePreset(preset)

    if preset == DateRangePreset.THIS_WEEK:
        return week_window(today)
    if preset == DateRangePreset.LAST_WEEK:
        return previous_window(week_window(today))
    if preset == DateRangePreset.THIS_MONTH:
        return month_window(today)
    if preset == DateRangePreset.LAST_MONTH:
        return previous_window(month_window(today))
    if preset == DateRangePreset.THIS_YEAR:
        return year_window(today)
    if preset == DateRangePreset.LAST_30_DAYS:
        return PeriodWindow(start=today - timedelta(days=29), end=today, granularity=Granularity.DAY)
    if preset == DateRangePreset.LAST_90_DAYS:
        return PeriodWindow(start=today - timedelta(days=89), end=today, granularity=Granularity.WEEK)

    if start is None or end is None:
        raise ValueError("Custom period requires start and end dates")
    if start > end:
        raise ValueError("Start date must be before end date")
    return PeriodWindow(start=start, end=end, granularity=Granularity.DAY)
