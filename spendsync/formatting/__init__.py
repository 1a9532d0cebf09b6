"""Display formatting for amounts, percentages and dates."""

from spendsync.formatting.formatters import (
    CURRENCY_SYMBOLS,
    currency_symbol,
    format_amount,
    format_change,
    format_currency,
    format_date,
    format_date_iso,
    format_date_with_preference,
    format_percentage,
    format_relative_date,
    format_reminder_time,
    format_spent_percentage,
    format_time,
    parse_amount_input,
    sanitize_amount_input,
)

__all__ = [
    "CURRENCY_SYMBOLS",
    "currency_symbol",
    "format_amount",
    "format_change",
    "format_currency",
    "format_date",
    "format_date_iso",
    "format_date_with_preference",
    "format_percentage",
    "format_relative_date",
    "format_reminder_time",
    "format_spent_percentage",
    "format_time",
    "parse_amount_input",
    "sanitize_amount_input",
]
