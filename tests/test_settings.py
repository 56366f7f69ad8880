import json

import pytest

from quote_pricing.config.settings import (
    CalculationSettings,
    Currency,
    Settings,
    get_settings,
    reset_settings,
)
from quote_pricing.exceptions import ConfigError, PricingErrorCategory


def test_defaults():
    calc = Settings.load(environ={}).calculation
    assert calc == CalculationSettings()
    assert calc.precision == 2
    assert calc.pf_percentage == 0
    assert calc.rounding_adjustment is False
    assert calc.currency == Currency()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("QUOTE_PRICING_PRECISION", "3")
    monkeypatch.setenv("QUOTE_PRICING_ROUNDING_ADJUSTMENT", "yes")
    monkeypatch.setenv("QUOTE_PRICING_CURRENCY_SYMBOL", "₹")
    reset_settings()

    calc = get_settings().calculation
    assert calc.precision == 3
    assert calc.rounding_adjustment is True
    assert calc.currency.symbol == "₹"


def test_settings_file_with_env_precedence(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"pfPercentage": 2.5, "roundingAdjustment": True, "precision": 4}))

    calc = Settings.load(environ={"QUOTE_PRICING_SETTINGS_FILE": str(path),
                                  "QUOTE_PRICING_PRECISION": "1"}).calculation

    assert calc.pf_percentage == 2.5
    assert calc.rounding_adjustment is True
    assert calc.precision == 1


def test_missing_settings_file(tmp_path):
    with pytest.raises(ConfigError) as exc:
        Settings.load(environ={"QUOTE_PRICING_SETTINGS_FILE": str(tmp_path / "nope.json")})
    assert exc.value.code == "CONFIG_FILE_NOT_FOUND"
    assert exc.value.category == PricingErrorCategory.CONFIG


def test_invalid_settings_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    with pytest.raises(ConfigError) as exc:
        Settings.load(environ={"QUOTE_PRICING_SETTINGS_FILE": str(path)})
    assert exc.value.code == "CONFIG_PARSE_ERROR"


@pytest.mark.parametrize("data", [
    {"precision": "abc"},
    {"precision": 11},
    {"pfPercentage": 150},
    {"pfPercentage": "lots"},
    {"roundingAdjustment": "maybe"},
])
def test_invalid_values_raise(data):
    with pytest.raises(ConfigError) as exc:
        CalculationSettings.from_dict(data)
    assert exc.value.code == "CONFIG_INVALID_VALUE"


def test_from_dict_camel_keys_layer_over_defaults():
    calc = CalculationSettings.from_dict({"roundOff": 0, "itemWiseShippingTax": "true",
                                          "currency": {"symbol": "€"}, "unknown": 1})
    assert calc.precision == 0
    assert calc.item_wise_shipping_tax is True
    assert calc.currency.symbol == "€"
    assert calc.pf_percentage == 0


def test_from_dict_empty_uses_process_defaults(monkeypatch):
    monkeypatch.setenv("QUOTE_PRICING_PF_PERCENTAGE", "2")
    reset_settings()
    assert CalculationSettings.from_dict(None).pf_percentage == 2
    assert CalculationSettings.from_dict({"roundingAdjustment": True}).pf_percentage == 2
