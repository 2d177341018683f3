"""Display formatting shared by exports and the CLI."""
from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from .time_utils import parse_iso_datetime

EMPTY = "-"


def format_currency(value: float | Decimal | int | None) -> str:
    """USD with thousands separators: 1234.5 -> "$1,234.50", -3 -> "-$3.00"."""
    if value is None:
        return EMPTY
    amount = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_date(value: str | date | datetime | None) -> str:
    """"Jan 5, 2025" for dates, datetimes and ISO-8601 strings."""
    if value is None or value == "":
        return EMPTY
    if isinstance(value, str):
        try:
            value = parse_iso_datetime(value)
        except ValueError:
            return EMPTY
        if value is None:
            return EMPTY
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def format_percentage(value: float | int | None) -> str:
    """Whole-number percent in, up to two decimals out: 12.5 -> "12.5%"."""
    if value is None:
        return EMPTY
    text = f"{float(value):,.2f}".rstrip("0").rstrip(".")
    return f"{text}%"


def format_datetime(value: str | datetime | None) -> str:
    """"Jan 5, 2025, 02:30 PM"."""
    if value is None or value == "":
        return EMPTY
    if isinstance(value, str):
        try:
            value = parse_iso_datetime(value)
        except ValueError:
            return EMPTY
        if value is None:
            return EMPTY
    return f"{format_date(value)}, {value.strftime('%I:%M %p')}"
