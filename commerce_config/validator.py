"""
Configuration Validator (``commerce_config.validator``).

Checks a parsed ``SiteConfiguration`` before it is handed to the kernel.
Errors block use of the configuration; warnings are logged and allowed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal

from commerce_config.schema import SiteConfiguration

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    ``is_valid`` is True only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_site_configuration(config: SiteConfiguration) -> ConfigValidationResult:
    result = ConfigValidationResult()

    _validate_identity(config, result)
    _validate_currency(config, result)
    _validate_tax_rate(config, result)
    _validate_shipping(config, result)
    _validate_inventory_and_checkout(config, result)

    return result


def _validate_identity(config: SiteConfiguration, result: ConfigValidationResult) -> None:
    if not config.config_id:
        result.add_error("config_id must not be empty")
    if config.version < 1:
        result.add_error(f"version must be >= 1, got {config.version}")


def _validate_currency(config: SiteConfiguration, result: ConfigValidationResult) -> None:
    if not _CURRENCY_RE.match(config.currency):
        result.add_error(
            f"currency must be a three-letter upper-case ISO code, got {config.currency!r}"
        )


def _validate_tax_rate(config: SiteConfiguration, result: ConfigValidationResult) -> None:
    rate = config.tax_rate
    if not rate.is_finite():
        result.add_error(f"tax_rate must be finite, got {rate}")
        return
    if rate < 0:
        result.add_error(f"tax_rate must not be negative, got {rate}")
    elif rate > 1:
        result.add_error(
            f"tax_rate is a fraction between 0 and 1 (8% is 0.08), got {rate}"
        )
    elif rate == Decimal(0):
        result.add_warning("tax_rate is zero; orders will carry no tax")


def _validate_shipping(config: SiteConfiguration, result: ConfigValidationResult) -> None:
    rates = config.shipping_rates
    for name, value in (
        ("standard", rates.standard),
        ("express", rates.express),
        ("overnight", rates.overnight),
    ):
        if value is not None and value < 0:
            result.add_error(f"shipping.rates.{name} must not be negative, got {value}")
    if config.free_shipping_threshold < 0:
        result.add_error(
            "shipping.free_shipping_threshold must not be negative, "
            f"got {config.free_shipping_threshold}"
        )


def _validate_inventory_and_checkout(
    config: SiteConfiguration, result: ConfigValidationResult
) -> None:
    if config.low_stock_threshold < 0:
        result.add_error(
            f"inventory.low_stock_threshold must not be negative, got {config.low_stock_threshold}"
        )
    if config.reservation_timeout_minutes <= 0:
        result.add_error(
            "checkout.reservation_timeout_minutes must be positive, "
            f"got {config.reservation_timeout_minutes}"
        )
    if config.retry_attempts < 1:
        result.add_error(f"checkout.retry_attempts must be >= 1, got {config.retry_attempts}")
