from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

ZERO = Decimal("0")


def parse_amount(value: Any) -> Decimal:
    """Amounts arrive as Decimal, float, int or text; anything unreadable is 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    return amount if amount.is_finite() else ZERO


def sum_amounts(values: Iterable[Any]) -> Decimal:
    return sum((parse_amount(v) for v in values), ZERO)


def parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def week_of_month(day: int) -> int:
    # days 1-7, 8-14, 15-21, then everything from the 22nd on
    if day <= 7:
        return 0
    if day <= 14:
        return 1
    if day <= 21:
        return 2
    return 3


def year_bounds(year: int):
    return date(year, 1, 1), date(year, 12, 31)


def amount_text(value: Any) -> str:
    """Plain text form of an amount as typed, e.g. 400 or 12.5."""
    if value is None:
        return ""
    if isinstance(value, (Decimal, int, float)) and not isinstance(value, bool):
        return format(parse_amount(value).normalize(), "f")
    return str(value).strip()
