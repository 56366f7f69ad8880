"""
Monetary coercion and rounding helpers.

Every monetary boundary in the engine goes through these so that repeated
additions never drift by a cent: values are rounded half-up through Decimal
and handed back as plain floats for JSON payloads.
"""
import logging
import math
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any

logger = logging.getLogger(__name__)


def to_number(value: Any, default: float = 0.0) -> float:
    """
    Coerce an arbitrary monetary input to a finite float.

    None, booleans, empty or non-numeric strings, NaN and infinities all
    become ``default``. Numeric strings ("12.5") are parsed.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return default
        try:
            number = float(text)
        except ValueError:
            logger.warning("Non-numeric monetary input %r coerced to %s", value, default)
            return default
    if not math.isfinite(number):
        logger.warning("Non-finite monetary input %r coerced to %s", value, default)
        return default
    return number


def round_half_up(value: Any, precision: int = 2) -> float:
    """Round half-up to ``precision`` decimal places (0 rounds to a whole number)."""
    number = to_number(value)
    try:
        quantum = Decimal(1).scaleb(-int(precision))
        rounded = Decimal(repr(number)).quantize(quantum, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return number
    result = float(rounded)
    # Normalise -0.0 so payloads never carry a signed zero
    return result + 0.0 if result else 0.0


def round_money(value: Any, precision: int = 2) -> float:
    """Alias used at line/aggregate boundaries."""
    return round_half_up(value, precision)


def percent_of(amount: float, percentage: float, precision: int = 2) -> float:
    """``amount * percentage / 100`` rounded to ``precision``."""
    return round_half_up(to_number(amount) * to_number(percentage) / 100, precision)
