"""
Helper utilities
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Iterable, Union

from sqlalchemy import inspect as sa_inspect

CENT = Decimal("0.01")


def month_start(value: Union[date, datetime]) -> date:
    """First day of the month containing ``value``"""
    return date(value.year, value.month, 1)


def quantize_money(amount) -> Decimal:
    """Round a monetary amount to cents, half up"""
    return Decimal(amount if amount is not None else 0).quantize(CENT, rounding=ROUND_HALF_UP)


def percentage(part: int, whole: int) -> Decimal:
    """100 * part / whole rounded to 2 places; whole must be > 0"""
    return (Decimal(100) * Decimal(part) / Decimal(whole)).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_month(value: str) -> date:
    """Parse YYYY-MM (or a full ISO date) to first-of-month date."""
    value = value.strip()
    for fmt in ['%Y-%m', '%Y-%m-%d']:
        try:
            return month_start(datetime.strptime(value, fmt))
        except ValueError:
            continue
    raise ValueError(f"Cannot parse month from '{value}'. Expected YYYY-MM.")


def row_to_dict(obj, extra: Iterable[str] = ()) -> Dict[str, Any]:
    """Column values of a mapped object (enums as their value), plus ``extra`` attributes."""
    data = {}
    for column in sa_inspect(type(obj)).columns:
        value = getattr(obj, column.key)
        data[column.key] = value.value if isinstance(value, Enum) else value
    for name in extra:
        data[name] = getattr(obj, name)
    return data
