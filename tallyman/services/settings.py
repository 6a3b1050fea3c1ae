"""Settings service: read/write the key/value business configuration.

Updates merge into the stored blob, so partial updates keep the other keys.
"""

import logging
from dataclasses import asdict
from decimal import Decimal, InvalidOperation

from django.db import transaction

from tallyman.adapters.system_settings import (
    DISCOUNT_RATES_KEY,
    POINTS_CONFIG_KEY,
    WHOLESALE_CONFIG_KEY,
    SystemSettingConfigProvider,
)
from tallyman.conf import config_snapshot
from tallyman.exceptions import TallymanError
from tallyman.models import CustomerType, SystemSetting

logger = logging.getLogger(__name__)

_POINTS_FIELDS = {"earn_rate", "points_per_dollar", "min_redeem_points"}
_INTEGER_POINTS_FIELDS = {"points_per_dollar", "min_redeem_points"}
_WHOLESALE_FIELDS = {
    "initial_share_discount",
    "upgrade_threshold",
    "upgraded_share_discount",
    "commission_withdraw_threshold",
}


class SettingsService:
    """
    Service for the configuration store.

    Uses @classmethod for extensibility (consistent with other services).
    """

    @classmethod
    def get_all(cls) -> dict:
        """Current configuration with defaults filled in."""
        snapshot = config_snapshot(SystemSettingConfigProvider())
        return {
            "discount_rates": {
                customer_type: snapshot.discount_rate_for(customer_type)
                for customer_type in CustomerType.values
            },
            "points_config": asdict(snapshot.points),
            "wholesale_config": asdict(snapshot.wholesale),
        }

    @classmethod
    def update_discount_rates(cls, **rates) -> SystemSetting:
        """
        Set discount percentages per customer type.

        Raises:
            TallymanError: INVALID_SETTING for unknown types or rates outside 0-100
        """
        cleaned = {}
        for customer_type, raw in rates.items():
            if customer_type not in CustomerType.values:
                raise TallymanError("INVALID_SETTING", field=customer_type)
            value = _clean_decimal(raw, customer_type)
            if value > 100:
                raise TallymanError("INVALID_SETTING", field=customer_type, value=str(raw))
            cleaned[customer_type] = value
        return cls._merge(DISCOUNT_RATES_KEY, cleaned, "Discount rates by customer type")

    @classmethod
    def update_points_config(cls, **values) -> SystemSetting:
        """Update earn_rate, points_per_dollar and/or min_redeem_points."""
        cleaned = {}
        for name, raw in values.items():
            if name not in _POINTS_FIELDS:
                raise TallymanError("INVALID_SETTING", field=name)
            value = _clean_decimal(raw, name)
            if name in _INTEGER_POINTS_FIELDS:
                if value != value.to_integral_value():
                    raise TallymanError("INVALID_SETTING", field=name, value=str(raw))
                value = int(value)
            if name == "points_per_dollar" and value == 0:
                raise TallymanError("INVALID_SETTING", field=name, value=str(raw))
            cleaned[name] = value
        return cls._merge(POINTS_CONFIG_KEY, cleaned, "Points system configuration")

    @classmethod
    def update_wholesale_config(cls, **values) -> SystemSetting:
        """Update wholesale share discounts and thresholds."""
        cleaned = {}
        for name, raw in values.items():
            if name not in _WHOLESALE_FIELDS:
                raise TallymanError("INVALID_SETTING", field=name)
            cleaned[name] = _clean_decimal(raw, name)
        return cls._merge(WHOLESALE_CONFIG_KEY, cleaned, "Wholesale program configuration")

    @classmethod
    def _merge(cls, key: str, values: dict, description: str) -> SystemSetting:
        with transaction.atomic():
            setting, _ = SystemSetting.objects.select_for_update().get_or_create(
                key=key,
                defaults={"value": {}, "description": description},
            )
            current = setting.value if isinstance(setting.value, dict) else {}
            setting.value = {**current, **values}
            setting.save(update_fields=["value", "updated_at"])

        logger.info("Updated setting %s: %s", key, sorted(values))
        return setting


def _clean_decimal(raw, name: str) -> Decimal:
    """Parse a non-negative finite number or raise INVALID_SETTING."""
    if isinstance(raw, bool):
        raise TallymanError("INVALID_SETTING", field=name, value=str(raw))
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise TallymanError("INVALID_SETTING", field=name, value=str(raw))
    if not value.is_finite() or value < 0:
        raise TallymanError("INVALID_SETTING", field=name, value=str(raw))
    return value
