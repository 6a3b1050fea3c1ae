"""Configuration protocol: business rates supplied to pricing and the ledger."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from types import MappingProxyType
from typing import Protocol, runtime_checkable

# Customer types that receive the default discount when no rate is configured
DISCOUNTED_CUSTOMER_TYPES = frozenset({"contractor", "designer", "wholesale"})

CENT = Decimal("0.01")


@dataclass(frozen=True)
class PointsConfig:
    """Points earn/redeem configuration."""

    earn_rate: Decimal = Decimal("1")  # points earned per dollar of order total
    points_per_dollar: int = 100  # points needed for one dollar of redemption value
    min_redeem_points: int = 100

    @property
    def point_value(self) -> Decimal:
        """Monetary value of a single point."""
        return Decimal(1) / Decimal(self.points_per_dollar)


@dataclass(frozen=True)
class WholesaleConfig:
    """Wholesale tier configuration (share discounts and thresholds)."""

    initial_share_discount: Decimal = Decimal("20")
    upgrade_threshold: Decimal = Decimal("10000")
    upgraded_share_discount: Decimal = Decimal("25")
    commission_withdraw_threshold: Decimal = Decimal("500")


@runtime_checkable
class ConfigProvider(Protocol):
    """
    Protocol for the key-value configuration store.

    Implementations must tolerate missing configuration and return
    documented defaults. Implemented by adapters/system_settings.py.

    Configuration in settings.py:
        TALLYMAN = {
            "CONFIG_PROVIDER": "tallyman.adapters.system_settings.SystemSettingConfigProvider",
        }
    """

    def get_discount_rates(self) -> dict[str, Decimal]:
        """Return discount percentages keyed by customer type."""
        ...

    def get_points_config(self) -> PointsConfig:
        """Return points earn/redeem configuration."""
        ...

    def get_wholesale_config(self) -> WholesaleConfig:
        """Return wholesale tier configuration."""
        ...


@dataclass(frozen=True)
class ConfigSnapshot:
    """
    Immutable view of the business configuration for one operation.

    Read once per request and passed into every pricing and award
    computation, so concurrent settings edits never leak mid-operation.
    """

    discount_rates: Mapping[str, Decimal] = field(default_factory=dict)
    points: PointsConfig = field(default_factory=PointsConfig)
    wholesale: WholesaleConfig = field(default_factory=WholesaleConfig)
    default_discount_rate: Decimal = Decimal("25")

    def __post_init__(self):
        object.__setattr__(
            self,
            "discount_rates",
            MappingProxyType({k: Decimal(str(v)) for k, v in dict(self.discount_rates).items()}),
        )

    @classmethod
    def from_provider(cls, provider: ConfigProvider) -> "ConfigSnapshot":
        from tallyman.conf import tallyman_settings

        return cls(
            discount_rates=provider.get_discount_rates(),
            points=provider.get_points_config(),
            wholesale=provider.get_wholesale_config(),
            default_discount_rate=Decimal(tallyman_settings.DEFAULT_DISCOUNT_RATE),
        )

    def discount_rate_for(self, customer_type: str) -> Decimal:
        """Configured discount percentage for a customer type."""
        if customer_type in self.discount_rates:
            return self.discount_rates[customer_type]
        if customer_type in DISCOUNTED_CUSTOMER_TYPES:
            return self.default_discount_rate
        return Decimal("0")

    def redemption_value(self, points: int) -> Decimal:
        """Monetary value of redeeming ``points``, rounded to cents."""
        return (Decimal(points) * self.points.point_value).quantize(CENT)

    def points_to_award(self, total: Decimal) -> int:
        """Points earned by a completed order of ``total``."""
        earned = (Decimal(total) * self.points.earn_rate).to_integral_value(rounding=ROUND_FLOOR)
        return max(0, int(earned))
