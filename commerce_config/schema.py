"""
SiteConfiguration schema.

The typed form of a storefront configuration file.  The loader parses YAML
into these frozen dataclasses; the validator checks them; the bridges turn
them into the kernel's ``CommerceSettings``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class ShippingRates:
    """Flat shipping rates per service level, in minor units."""

    standard: int
    express: int | None = None
    overnight: int | None = None


@dataclass(frozen=True)
class SiteConfiguration:
    """
    One storefront configuration.

    ``checksum`` identifies the exact source content; two files with the
    same data have the same checksum.
    """

    config_id: str
    version: int
    site_name: str
    site_description: str | None
    currency: str
    tax_rate: Decimal
    shipping_rates: ShippingRates
    free_shipping_threshold: int
    low_stock_threshold: int
    reservation_timeout_minutes: int
    retry_attempts: int
    checksum: str
    source_path: str | None = None
