"""
Currency display formatting.

Renders amounts the way the storefront shows them: symbol first, grouped
thousands, fixed precision, and a minus sign between symbol and digits for
negatives ("$-1,234.50").
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from ..config.settings import Currency, DEFAULT_CURRENCY
from .money import to_number

__all__ = ["Currency", "DEFAULT_CURRENCY", "format_number", "format_currency"]


def _group(digits: str, separator: str) -> str:
    groups = []
    while len(digits) > 3:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    groups.insert(0, digits)
    return separator.join(groups)


def format_number(value: Any, currency: Currency = DEFAULT_CURRENCY) -> str:
    """Format the magnitude of ``value`` without a symbol or sign."""
    precision = max(int(currency.precision), 0)
    quantum = Decimal(1).scaleb(-precision)
    amount = Decimal(repr(abs(to_number(value)))).quantize(quantum, rounding=ROUND_HALF_UP)
    whole, _, fraction = f"{amount:f}".partition(".")
    text = _group(whole, currency.thousand)
    if precision:
        text += currency.decimal + fraction.ljust(precision, "0")
    return text


def format_currency(value: Any, currency: Optional[Any] = None) -> str:
    """
    Render ``value`` under ``currency``.

    Falls back to ``DEFAULT_CURRENCY`` when no currency context is available.
    None, non-numeric and non-finite inputs render as a formatted zero.
    """
    currency = Currency.from_dict(currency) if not isinstance(currency, Currency) else currency
    number = to_number(value)
    body = format_number(number, currency)
    # Values that round to zero never render as "-0.00"
    if number < 0 and any(ch not in "0" for ch in body if ch.isdigit()):
        return f"{currency.symbol}-{body}"
    return f"{currency.symbol}{body}"
