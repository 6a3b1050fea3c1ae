"""
Tallyman configuration.

Usage in settings.py:
    TALLYMAN = {
        "CONFIG_PROVIDER": "tallyman.adapters.system_settings.SystemSettingConfigProvider",
        "INVOICE_PREFIX": "INV",
    }

Business rates (discounts, points) are not Django settings: they live in
SystemSetting rows and are read once per operation via config_snapshot().
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings
from django.utils.module_loading import import_string


@dataclass
class TallymanSettings:
    """Tallyman configuration settings."""

    # ConfigProvider implementation (dotted path)
    CONFIG_PROVIDER: str = "tallyman.adapters.system_settings.SystemSettingConfigProvider"

    # Fallback discount for discounted customer types when none is configured
    DEFAULT_DISCOUNT_RATE: int = 25

    # Order invoice references: INV-20250101-1A2B3C4D
    INVOICE_PREFIX: str = "INV"

    # Order listing
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100


def get_tallyman_settings() -> TallymanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "TALLYMAN", {})
    return TallymanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_tallyman_settings(), name)


tallyman_settings = _LazySettings()


def get_config_provider():
    """Instantiate the configured ConfigProvider."""
    return import_string(tallyman_settings.CONFIG_PROVIDER)()


def config_snapshot(provider=None):
    """Read the current business configuration into an immutable snapshot."""
    from tallyman.protocols.config import ConfigSnapshot

    return ConfigSnapshot.from_provider(provider or get_config_provider())
