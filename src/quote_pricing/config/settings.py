"""
Centralized settings for the quote pricing engine.

Two layers:
- ``CalculationSettings``: the per-call tenant quote settings every engine
  function takes (precision, P&F percentage, shipping tax mode, rounding).
- ``Settings``: process-wide defaults loaded from the environment and an
  optional JSON file, cached behind ``get_settings()``.
"""
import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from ..exceptions import ConfigError


@dataclass(frozen=True)
class Currency:
    """Currency descriptor used for display."""
    symbol: str = "$"
    decimal: str = "."
    thousand: str = ","
    precision: int = 2
    currency_code: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Currency":
        """Build from a storefront currency object; missing keys take the defaults."""
        if not data:
            return DEFAULT_CURRENCY
        if isinstance(data, Currency):
            return data
        return cls(
            symbol=data.get("symbol", DEFAULT_CURRENCY.symbol),
            decimal=data.get("decimal", DEFAULT_CURRENCY.decimal),
            thousand=data.get("thousand", DEFAULT_CURRENCY.thousand),
            precision=int(data.get("precision", DEFAULT_CURRENCY.precision)),
            currency_code=data.get("currencyCode"),
        )


DEFAULT_CURRENCY = Currency()


ENV_VAR_MAPPING = {
    "QUOTE_PRICING_PRECISION": "precision",
    "QUOTE_PRICING_PF_PERCENTAGE": "pf_percentage",
    "QUOTE_PRICING_ITEM_WISE_SHIPPING_TAX": "item_wise_shipping_tax",
    "QUOTE_PRICING_ROUNDING_ADJUSTMENT": "rounding_adjustment",
    "QUOTE_PRICING_CURRENCY_SYMBOL": "currency_symbol",
    "QUOTE_PRICING_SETTINGS_FILE": "settings_file",
}

_CAMEL_KEYS = {
    "precision": "precision",
    "roundOff": "precision",
    "pfPercentage": "pf_percentage",
    "pfItemValue": "pf_percentage",
    "itemWiseShippingTax": "item_wise_shipping_tax",
    "roundingAdjustment": "rounding_adjustment",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean for {key}: {value!r}", code="CONFIG_INVALID_VALUE")


def _parse_precision(value: Any) -> int:
    try:
        precision = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid precision: {value!r}", code="CONFIG_INVALID_VALUE") from e
    if not 0 <= precision <= 10:
        raise ConfigError(f"Precision must be between 0 and 10, got {precision}",
                          code="CONFIG_INVALID_VALUE")
    return precision


def _parse_percentage(key: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid percentage for {key}: {value!r}",
                          code="CONFIG_INVALID_VALUE") from e
    if not 0 <= number <= 100:
        raise ConfigError(f"{key} must be between 0 and 100, got {number}",
                          code="CONFIG_INVALID_VALUE")
    return number


@dataclass(frozen=True)
class CalculationSettings:
    """Tenant quote settings consumed by every calculation."""
    precision: int = 2
    pf_percentage: float = 0.0
    item_wise_shipping_tax: bool = False
    rounding_adjustment: bool = False
    currency: Currency = DEFAULT_CURRENCY

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]] = None,
                  defaults: Optional["CalculationSettings"] = None) -> "CalculationSettings":
        """Build from camelCase or snake_case keys, layered over ``defaults``."""
        base = defaults or get_settings().calculation
        if not data:
            return base
        if isinstance(data, CalculationSettings):
            return data

        values: dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_KEYS.get(key, key)
            if value is None:
                continue
            if name == "precision":
                values[name] = _parse_precision(value)
            elif name == "pf_percentage":
                values[name] = _parse_percentage(name, value)
            elif name in ("item_wise_shipping_tax", "rounding_adjustment"):
                values[name] = _parse_bool(name, value)
            elif name == "currency":
                values[name] = Currency.from_dict(value)
        return replace(base, **values)


@dataclass
class Settings:
    """Process-wide defaults."""
    calculation: CalculationSettings = field(default_factory=CalculationSettings)
    settings_file: Optional[Path] = None

    @classmethod
    def load(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Load settings from an optional JSON file, then environment overrides."""
        environ = os.environ if environ is None else environ

        env_values = {}
        for env_var, key in ENV_VAR_MAPPING.items():
            value = environ.get(env_var)
            if value is not None and value != "":
                env_values[key] = value

        settings_file = env_values.pop("settings_file", None)
        file_values: dict[str, Any] = {}
        path = None
        if settings_file:
            path = Path(settings_file)
            if not path.exists():
                raise ConfigError(f"Settings file not found: {path}",
                                  code="CONFIG_FILE_NOT_FOUND")
            try:
                with open(path, "r", encoding="utf-8") as f:
                    file_values = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Invalid JSON in settings file: {path}",
                                  code="CONFIG_PARSE_ERROR") from e

        symbol = env_values.pop("currency_symbol", None)
        merged = {**file_values, **env_values}
        calculation = CalculationSettings.from_dict(merged, defaults=CalculationSettings())
        if symbol:
            calculation = replace(calculation, currency=replace(calculation.currency, symbol=symbol))

        return cls(calculation=calculation, settings_file=path)


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings():
    """Drop the cached settings so the next ``get_settings()`` reloads."""
    global _settings
    _settings = None
