"""SystemSetting ConfigProvider adapter."""

import logging
from decimal import Decimal, InvalidOperation

from tallyman.models import SystemSetting
from tallyman.protocols.config import PointsConfig, WholesaleConfig

logger = logging.getLogger(__name__)

DISCOUNT_RATES_KEY = "discount_rates"
POINTS_CONFIG_KEY = "points_config"
WHOLESALE_CONFIG_KEY = "wholesale_config"


class SystemSettingConfigProvider:
    """
    Adapter that implements ConfigProvider by reading SystemSetting rows.

    Missing rows, missing keys and malformed values fall back to the
    dataclass defaults; malformed values are logged.

    Configuration in settings.py:
        TALLYMAN = {
            "CONFIG_PROVIDER": "tallyman.adapters.system_settings.SystemSettingConfigProvider",
        }
    """

    def get_discount_rates(self) -> dict[str, Decimal]:
        """Return discount percentages keyed by customer type."""
        rates = {}
        for customer_type, raw in self._read(DISCOUNT_RATES_KEY).items():
            rate = _to_decimal(raw, f"{DISCOUNT_RATES_KEY}.{customer_type}")
            if rate is None:
                continue
            if not Decimal("0") <= rate <= Decimal("100"):
                logger.warning("Ignoring out-of-range discount rate %s=%s", customer_type, raw)
                continue
            rates[customer_type] = rate
        return rates

    def get_points_config(self) -> PointsConfig:
        """Return points earn/redeem configuration."""
        data = self._read(POINTS_CONFIG_KEY)
        defaults = PointsConfig()

        earn_rate = _to_decimal(data.get("earn_rate"), "points_config.earn_rate")
        points_per_dollar = _to_positive_int(
            data.get("points_per_dollar"), "points_config.points_per_dollar"
        )
        min_redeem = _to_positive_int(
            data.get("min_redeem_points"), "points_config.min_redeem_points"
        )

        return PointsConfig(
            earn_rate=earn_rate if earn_rate is not None and earn_rate >= 0 else defaults.earn_rate,
            points_per_dollar=points_per_dollar or defaults.points_per_dollar,
            min_redeem_points=min_redeem if min_redeem is not None else defaults.min_redeem_points,
        )

    def get_wholesale_config(self) -> WholesaleConfig:
        """Return wholesale tier configuration."""
        data = self._read(WHOLESALE_CONFIG_KEY)
        defaults = WholesaleConfig()
        values = {}
        for name in (
            "initial_share_discount",
            "upgrade_threshold",
            "upgraded_share_discount",
            "commission_withdraw_threshold",
        ):
            value = _to_decimal(data.get(name), f"{WHOLESALE_CONFIG_KEY}.{name}")
            values[name] = value if value is not None else getattr(defaults, name)
        return WholesaleConfig(**values)

    def _read(self, key: str) -> dict:
        setting = SystemSetting.objects.filter(key=key).first()
        if setting is None:
            return {}
        if not isinstance(setting.value, dict):
            logger.warning("SystemSetting %r is not an object; using defaults", key)
            return {}
        return setting.value


def _to_decimal(raw, name: str) -> Decimal | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        logger.warning("Malformed setting %s=%r; using default", name, raw)
        return None
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        value = None
    if value is None or not value.is_finite():
        logger.warning("Malformed setting %s=%r; using default", name, raw)
        return None
    return value


def _to_positive_int(raw, name: str) -> int | None:
    value = _to_decimal(raw, name)
    if value is None:
        return None
    if value != value.to_integral_value() or value < 0:
        logger.warning("Malformed setting %s=%r; using default", name, raw)
        return None
    return int(value)
