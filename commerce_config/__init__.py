"""
commerce_config -- single public entrypoint for storefront configuration.

Responsibility:
    Provides the one way to obtain site configuration at runtime through
    ``get_site_configuration()``: tax rate, shipping rates, low-stock
    threshold, reservation timeout.  The kernel never reads configuration
    files; ``commerce_config.bridges`` turns a ``SiteConfiguration`` into
    the kernel's ``CommerceSettings``.

Architecture position:
    Configuration.  Sits above ``commerce_kernel`` and below
    ``commerce_services``.  The kernel MUST NEVER import from
    ``commerce_config``.

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``ValueError`` -- parse or validation failures.

Audit relevance:
    Every successful load emits a ``COMMERCE_CONFIG_TRACE`` log entry with
    the config id, version, source file and checksum, tying each priced
    order to the configuration in force.
"""

from __future__ import annotations

import logging
from pathlib import Path

from commerce_config.loader import load_yaml_file, parse_site_configuration
from commerce_config.schema import ShippingRates, SiteConfiguration
from commerce_config.validator import ConfigValidationResult, validate_site_configuration

_logger = logging.getLogger("commerce_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_site_configuration(path: Path | str | None = None) -> SiteConfiguration:
    """Load, validate and return the site configuration.

    Args:
        path: YAML file to load.  Defaults to ``commerce_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file does not parse or fails validation.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(source)
    try:
        config = parse_site_configuration(data, source)
    except KeyError as exc:
        raise ValueError(f"Configuration {source} is missing required key {exc}") from exc

    validation = validate_site_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_warning", extra={"config_id": config.config_id, "warning": warning})

    _logger.info(
        "COMMERCE_CONFIG_TRACE",
        extra={
            "trace_type": "COMMERCE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "source_path": config.source_path,
            "checksum": config.checksum,
            "currency": config.currency,
            "tax_rate": str(config.tax_rate),
        },
    )
    return config


__all__ = [
    "ConfigValidationResult",
    "DEFAULT_CONFIG_PATH",
    "ShippingRates",
    "SiteConfiguration",
    "get_site_configuration",
    "validate_site_configuration",
]
