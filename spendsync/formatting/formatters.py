"""
Formatter Service

Pure functions converting amounts, percentages and dates to display
strings, and user-typed amount text back to numbers.

Amount input is handled as text the whole way: sanitize_amount_input()
cleans what was typed, parse_amount_input() turns the cleaned text into a
Decimal (or None when nothing usable was typed). An empty field is "no
amount", never zero.
"""

import re
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from spendsync.models.metrics import BalanceBar, DerivedMetric
from spendsync.models.preferences import Currency, DateFormat, ReminderTime


DateLike = Union[date, datetime, str]

CURRENCY_SYMBOLS: dict[Currency, str] = {
    Currency.USD: "$",
    Currency.EUR: "€",
    Currency.GBP: "£",
    Currency.JPY: "¥",
    Currency.CAD: "CA$",
    Currency.AUD: "A$",
    Currency.CHF: "CHF",
    Currency.CNY: "¥",
    Currency.INR: "₹",
    Currency.MXN: "MX$",
}

UNBOUNDED_LABEL = "100%+"
NEW_LABEL = "New"

_NON_AMOUNT_CHARS = re.compile(r"[^0-9.]")
_CENTS = Decimal("0.01")


# =============================================================================
# AMOUNTS
# =============================================================================

def currency_symbol(currency: Union[Currency, str]) -> str:
    """Symbol for a supported currency code; "$" for anything else."""
    try:
        return CURRENCY_SYMBOLS[Currency(currency)]
    except ValueError:
        return "$"


def _quantize(amount: Union[Decimal, int, float, str]) -> Decimal:
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def format_amount(amount: Union[Decimal, int, float, str]) -> str:
    """Plain two-decimal form used in amount inputs: 1234.5 -> "1234.50"."""
    return f"{_quantize(amount):.2f}"


def format_currency(
    amount: Union[Decimal, int, float, str],
    currency: Union[Currency, str] = Currency.USD,
) -> str:
    """
    Amount with currency symbol and thousands separators.

    format_currency(-1234.5) -> "-$1,234.50"
    """
    value = _quantize(amount)
    symbol = currency_symbol(currency)
    if symbol[-1].isalpha():
        symbol += " "
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def sanitize_amount_input(text: str) -> str:
    """
    Clean typed amount text.

    - drops everything except digits and "."
    - merges extra decimal points into the first ("1.2.3" -> "1.23")
    - truncates to two decimals ("25.999" -> "25.99")
    """
    cleaned = _NON_AMOUNT_CHARS.sub("", text or "")
    parts = cleaned.split(".")
    if len(parts) > 2:
        return parts[0] + "." + "".join(parts[1:])[:2]
    if len(parts) == 2 and len(parts[1]) > 2:
        return parts[0] + "." + parts[1][:2]
    return cleaned


def parse_amount_input(text: str) -> Optional[Decimal]:
    """
    Amount typed by the user, or None when nothing usable was typed.

    parse_amount_input("") -> None
    parse_amount_input("25.999") -> Decimal("25.99")
    """
    cleaned = sanitize_amount_input(text)
    if cleaned in ("", "."):
        return None
    if cleaned.startswith("."):
        cleaned = "0" + cleaned
    if cleaned.endswith("."):
        cleaned = cleaned[:-1]
    return Decimal(cleaned)


# =============================================================================
# PERCENTAGES
# =============================================================================

def format_percentage(
    value: Optional[Union[Decimal, float, int]],
    *,
    decimals: int = 1,
    signed: bool = False,
    is_unbounded: bool = False,
) -> str:
    """
    Percentage with a fixed number of decimals.

    A missing value or an unbounded flag renders as "100%+".
    """
    if is_unbounded or value is None:
        return UNBOUNDED_LABEL
    quantum = Decimal(1).scaleb(-decimals)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = abs(rounded)
    sign = "+" if signed and rounded > 0 else ""
    return f"{sign}{rounded}%"


def format_change(metric: DerivedMetric) -> str:
    """Change badge of a comparison card: "+12.5%", "-3.0%", "New"."""
    if metric.is_unbounded:
        return NEW_LABEL
    return format_percentage(metric.change_percentage, signed=True)


def format_spent_percentage(bar: BalanceBar) -> str:
    """Whole-number share of income spent: "150%", or "100%+" with no income."""
    return format_percentage(bar.expense_percentage, decimals=0, is_unbounded=bar.is_unbounded)


# =============================================================================
# DATES
# =============================================================================

def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(value).date() if "T" in value else date.fromisoformat(value[:10])


def format_date(value: DateLike) -> str:
    """Short US date: "Jan 5, 2026"."""
    day = _as_date(value)
    return f"{day.strftime('%b')} {day.day}, {day.year}"


def format_date_iso(value: DateLike) -> str:
    return _as_date(value).isoformat()


def format_relative_date(value: DateLike, today: Optional[date] = None) -> str:
    """Today, Yesterday or the short date."""
    day = _as_date(value)
    today = today or date.today()
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    return format_date(day)


def format_time(value: Union[datetime, time, str]) -> str:
    """12-hour clock time: "3:05 PM"."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return format_reminder_time(ReminderTime(hour=value.hour, minute=value.minute))


def format_reminder_time(value: ReminderTime) -> str:
    period = "PM" if value.hour >= 12 else "AM"
    hour = value.hour % 12 or 12
    return f"{hour}:{value.minute:02d} {period}"


def format_date_with_preference(value: DateLike, date_format: Union[DateFormat, str]) -> str:
    day = _as_date(value)
    try:
        date_format = DateFormat(date_format)
    except ValueError:
        date_format = DateFormat.MM_DD_YYYY
    if date_format == DateFormat.DD_MM_YYYY:
        return day.strftime("%d/%m/%Y")
    if date_format == DateFormat.YYYY_MM_DD:
        return day.isoformat()
    return day.strftime("%m/%d/%Y")
