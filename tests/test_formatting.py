import pytest

from quote_pricing.config.settings import Currency
from quote_pricing.engine.formatting import format_currency, format_number


@pytest.mark.parametrize("value,expected", [
    (1234.5, "$1,234.50"),
    (0, "$0.00"),
    (999.995, "$1,000.00"),
    (-1234.5, "$-1,234.50"),
    (-0.001, "$0.00"),
    (None, "$0.00"),
    ("abc", "$0.00"),
    (float("nan"), "$0.00"),
    ("1000000", "$1,000,000.00"),
])
def test_default_currency(value, expected):
    assert format_currency(value) == expected


def test_storefront_currency_object():
    currency = {"symbol": "₹", "decimal": ",", "thousand": ".", "precision": 0,
                "currencyCode": "INR"}
    assert format_currency(1234567.5, currency) == "₹1.234.568"


def test_currency_instance_and_precision():
    currency = Currency(symbol="€", precision=3)
    assert format_currency(12.3456, currency) == "€12.346"
    assert format_number(-12.3456, currency) == "12.346"


def test_missing_currency_falls_back_to_default():
    assert format_currency(5, {}) == "$5.00"
