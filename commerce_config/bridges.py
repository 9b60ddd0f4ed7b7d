"""
Config -> Kernel bridges.

Converts a ``SiteConfiguration`` into the kernel's ``CommerceSettings`` and
provides the YAML-backed ``SettingsProvider``.  These live here because the
kernel must never import commerce_config.

Usage:
    from commerce_config.bridges import YamlSettingsProvider

    settings = YamlSettingsProvider()          # bundled default.yaml
    settings.current().tax_rate                # Decimal("0.08")
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from commerce_config import get_site_configuration
from commerce_config.schema import SiteConfiguration
from commerce_kernel.domain.collaborators import CommerceSettings, SettingsProvider

_logger = logging.getLogger("commerce_kernel.config")


def build_commerce_settings(config: SiteConfiguration) -> CommerceSettings:
    """Kernel settings from a site configuration.  Standard rate is the flat rate."""
    return CommerceSettings(
        tax_rate=config.tax_rate,
        free_shipping_threshold=config.free_shipping_threshold,
        flat_shipping_rate=config.shipping_rates.standard,
        low_stock_threshold=config.low_stock_threshold,
        currency=config.currency,
        reservation_timeout_minutes=config.reservation_timeout_minutes,
    )


class YamlSettingsProvider(SettingsProvider):
    """
    SettingsProvider backed by a YAML file.

    The file is read on construction and again on ``reload()``; ``current()``
    returns the settings from the last successful load, so an edit to the
    tax rate takes effect for every price computed after the reload.
    """

    def __init__(self, path: Path | str | None = None):
        self._path = path
        self._lock = threading.Lock()
        self._config = get_site_configuration(path)
        self._settings = build_commerce_settings(self._config)

    @property
    def configuration(self) -> SiteConfiguration:
        return self._config

    def current(self) -> CommerceSettings:
        with self._lock:
            return self._settings

    def reload(self) -> bool:
        """Re-read the file.  Returns True if its content changed."""
        config = get_site_configuration(self._path)
        settings = build_commerce_settings(config)
        with self._lock:
            changed = config.checksum != self._config.checksum
            self._config = config
            self._settings = settings
        if changed:
            _logger.info(
                "settings_reloaded",
                extra={"config_id": config.config_id, "checksum": config.checksum},
            )
        return changed
