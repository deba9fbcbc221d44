"""
Display formatting for amounts, dates and file sizes
"""

import math
from datetime import date, datetime
from typing import Optional, Union

CURRENCY_SYMBOL = '₪'

Number = Union[int, float, str, None]


def _to_float(value: Number) -> Optional[float]:
    if value is None or value == '':
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def format_number_with_commas(value: Number, decimals: int = 2) -> str:
    """1234.5 -> '1,234.50'; empty or unparsable values -> '0.00'"""
    number = _to_float(value)
    if number is None:
        return '0.00'
    return f"{number:,.{decimals}f}"


def format_currency(value: Number, decimals: int = 2, symbol: str = CURRENCY_SYMBOL) -> str:
    number = _to_float(value)
    if number is not None and number < 0:
        return f"-{symbol}{format_number_with_commas(abs(number), decimals)}"
    return f"{symbol}{format_number_with_commas(value, decimals)}"


def format_price(price: Number, currency: str = CURRENCY_SYMBOL) -> str:
    """Price with up to two decimals and no trailing zeros: 1500 -> '₪1,500', 99.5 -> '₪99.5'"""
    number = _to_float(price) or 0.0
    text = f"{number:,.2f}".rstrip('0').rstrip('.')
    return f"{currency}{text}"


def _parse_date(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip().replace('Z', '+00:00')
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def format_date(value) -> str:
    """dd/mm/yyyy, empty string for missing or invalid input"""
    parsed = _parse_date(value)
    return parsed.strftime('%d/%m/%Y') if parsed else ''


def format_datetime(value) -> str:
    parsed = _parse_date(value)
    return parsed.strftime('%d/%m/%Y %H:%M') if parsed else ''


def format_file_size(size_bytes: int) -> str:
    if not size_bytes:
        return '0 B'
    units = ['B', 'KB', 'MB', 'GB']
    index = min(int(math.log(size_bytes, 1024)), len(units) - 1)
    value = round(size_bytes / (1024 ** index), 2)
    if value == int(value):
        value = int(value)
    return f"{value} {units[index]}"
