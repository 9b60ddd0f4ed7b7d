"""
Configuration Loader (``commerce_config.loader``).

Responsibility
--------------
Loads a storefront YAML file and parses it into a ``SiteConfiguration``.
Callers use ``commerce_config.get_site_configuration()``; this module is
the parsing step behind it.

Invariants enforced
-------------------
* No silent defaults for required keys: a missing key raises ``KeyError``.
* Decimal values are parsed from their string form, never via binary float
  arithmetic.
* ``compute_checksum`` is deterministic for equal data.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Non-numeric values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from commerce_config.schema import ShippingRates, SiteConfiguration


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def parse_decimal(value: Any, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field} must be a number, got {value!r}") from exc


def parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field} must be an integer, got {value!r}")
    return value


def _optional_int(value: Any, field: str) -> int | None:
    return None if value is None else parse_int(value, field)


def parse_shipping_rates(data: dict[str, Any]) -> ShippingRates:
    return ShippingRates(
        standard=parse_int(data["standard"], "shipping.rates.standard"),
        express=_optional_int(data.get("express"), "shipping.rates.express"),
        overnight=_optional_int(data.get("overnight"), "shipping.rates.overnight"),
    )


def parse_site_configuration(
    data: dict[str, Any], source_path: Path | None = None
) -> SiteConfiguration:
    """Parse a loaded YAML mapping into a ``SiteConfiguration``."""
    site = data.get("site") or {}
    shipping = data["shipping"]
    inventory = data.get("inventory") or {}
    checkout = data.get("checkout") or {}

    return SiteConfiguration(
        config_id=str(data["config_id"]),
        version=parse_int(data.get("version", 1), "version"),
        site_name=str(site.get("name", "")),
        site_description=site.get("description"),
        currency=str(data["currency"]),
        tax_rate=parse_decimal(data["tax_rate"], "tax_rate"),
        shipping_rates=parse_shipping_rates(shipping["rates"]),
        free_shipping_threshold=parse_int(
            shipping["free_shipping_threshold"], "shipping.free_shipping_threshold"
        ),
        low_stock_threshold=parse_int(
            inventory.get("low_stock_threshold", 5), "inventory.low_stock_threshold"
        ),
        reservation_timeout_minutes=parse_int(
            checkout.get("reservation_timeout_minutes", 30),
            "checkout.reservation_timeout_minutes",
        ),
        retry_attempts=parse_int(checkout.get("retry_attempts", 3), "checkout.retry_attempts"),
        checksum=compute_checksum(data),
        source_path=str(source_path) if source_path is not None else None,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
