"""
Formatting helpers for receipts, tickets and log lines.
UK style: comma thousands separator, dot decimal separator, pound sign.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from typing import Union, Optional


def money_gbp(value: Union[int, float, Decimal, str, None], symbol: str = '£') -> str:
    """
    Format an amount with exactly 2 decimals and a currency symbol.

    Examples:
        money_gbp(1500) -> "£1,500.00"
        money_gbp('21.6') -> "£21.60"
        money_gbp(-2) -> "-£2.00"
        money_gbp(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    sign = '-' if num < 0 else ''
    return f"{sign}{symbol}{abs(num):,.2f}"


def percent(value: Union[int, float, Decimal, str, None]) -> str:
    """20 -> "20%", 12.50 -> "12.5%"."""
    if value is None or value == "":
        return "-"
    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"
    text = f"{num:f}"
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return f"{text}%"


def date_uk(value: Union[date, datetime, None]) -> str:
    """dd/mm/YYYY"""
    if not value:
        return "-"
    return value.strftime('%d/%m/%Y')


def datetime_uk(value: Optional[datetime]) -> str:
    """dd/mm/YYYY HH:MM"""
    if not value:
        return "-"
    return value.strftime('%d/%m/%Y %H:%M')
