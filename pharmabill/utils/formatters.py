"""
Formatting helpers for invoices and API payloads.
Indian conventions: lakh/crore digit grouping, DD/MM/YYYY dates.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from typing import Union, Optional

CURRENCY_PREFIX = 'Rs.'


def _group_indian(integer_part: str) -> str:
    """'1234567' -> '12,34,567'"""
    if len(integer_part) <= 3:
        return integer_part
    head, tail = integer_part[:-3], integer_part[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ','.join(groups) + ',' + tail


def num_in(value: Union[int, float, Decimal, str, None], decimals: int = 2) -> str:
    """
    Format a number with Indian digit grouping and a fixed number of decimals.

    Examples:
        num_in(1234567.5) -> "12,34,567.50"
        num_in(302.4) -> "302.40"
        num_in(None) -> "-"
    """
    if value is None or value == "":
        return "-"
    try:
        num = Decimal(str(value)).quantize(Decimal(10) ** -decimals, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = "-" if num < 0 else ""
    text = f"{abs(num):.{decimals}f}"
    if decimals:
        integer_part, decimal_part = text.split('.')
        return f"{sign}{_group_indian(integer_part)}.{decimal_part}"
    return f"{sign}{_group_indian(text)}"


def money_inr(value: Union[int, float, Decimal, str, None]) -> str:
    """money_inr(1500) -> "Rs.1,500.00" """
    formatted = num_in(value)
    if formatted == "-":
        return formatted
    if formatted.startswith('-'):
        return f"-{CURRENCY_PREFIX}{formatted[1:]}"
    return f"{CURRENCY_PREFIX}{formatted}"


def qty_fmt(value: Union[int, float, Decimal, None]) -> str:
    """Drop insignificant decimals: 6.00 -> "6", 2.50 -> "2.5"."""
    if value is None:
        return "0"
    num = Decimal(str(value))
    if num % 1 == 0:
        return str(int(num))
    return f"{num:.2f}".rstrip('0').rstrip('.')


def date_in(value: Union[date, datetime, None]) -> str:
    """date_in(date(2024, 1, 12)) -> "12/01/2024" """
    if value is None:
        return "-"
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        return "-"
    return value.strftime("%d/%m/%Y")


def datetime_in(value: Optional[datetime], with_seconds: bool = False) -> str:
    if not isinstance(value, datetime):
        return "-"
    return value.strftime("%d/%m/%Y %H:%M:%S" if with_seconds else "%d/%m/%Y %H:%M")


def expiry_month(value: Union[date, datetime, None]) -> str:
    """Expiry as printed on pharmacy bills: MM/YY."""
    if value is None:
        return "-"
    if not isinstance(value, (date, datetime)):
        return "-"
    return value.strftime("%m/%y")
