"""Cart pricing: subtotal, discount and points redemption.

Pure functions: no database access, no side effects. Everything they need
(customer rate, balance, ConfigSnapshot) is passed in.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from tallyman.exceptions import InvalidCartError
from tallyman.protocols.config import CENT, ConfigSnapshot

# Largest amount the order money columns hold (max_digits=12, decimal_places=2)
MAX_AMOUNT = Decimal("9999999999.99")
# OrderItem.quantity is a PositiveIntegerField
MAX_QUANTITY = 2147483647
MAX_ITEM_NAME_LENGTH = 200


@dataclass(frozen=True)
class CartLine:
    """Validated cart line."""

    name: str
    quantity: int
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceQuote:
    """Result of pricing a cart for a customer."""

    lines: tuple[CartLine, ...]
    subtotal: Decimal
    discount_rate: Decimal
    discount_amount: Decimal
    points_requested: int
    points_redeemed: int
    redemption_value: Decimal
    total: Decimal

    @property
    def clamped(self) -> bool:
        """True when the redemption request exceeded the available balance."""
        return self.points_redeemed < self.points_requested


def parse_items(items: Iterable[Mapping]) -> tuple[CartLine, ...]:
    """
    Validate raw cart items.

    Each item needs ``name``, ``quantity`` (positive integer) and
    ``unit_price`` (non-negative; ``unitPrice`` is accepted too).

    Raises:
        InvalidCartError: If the cart is empty or any line is malformed
    """
    if items is None or isinstance(items, (str, bytes, Mapping)):
        raise InvalidCartError("Items must be a list")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise InvalidCartError("Item must be an object", line=index)

        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidCartError("Item name is required", line=index)
        if len(name.strip()) > MAX_ITEM_NAME_LENGTH:
            raise InvalidCartError("Item name is too long", line=index)

        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidCartError("Quantity must be a positive integer", line=index)
        if quantity > MAX_QUANTITY:
            raise InvalidCartError("Quantity is too large", line=index)

        raw_price = item.get("unit_price", item.get("unitPrice"))
        unit_price = _to_money(raw_price)
        if unit_price is None or unit_price < 0:
            raise InvalidCartError("Unit price must be a non-negative amount", line=index)
        if unit_price > MAX_AMOUNT:
            raise InvalidCartError("Unit price is too large", line=index)

        lines.append(CartLine(name=name.strip(), quantity=quantity, unit_price=unit_price))

    if not lines:
        raise InvalidCartError("Cart is empty")
    return tuple(lines)


def calculate(
    items: Iterable[Mapping],
    discount_rate: Decimal,
    points_to_redeem: int | None,
    points_available: int,
    config: ConfigSnapshot,
) -> PriceQuote:
    """
    Price a cart.

    Redemption is best-effort: a request above ``points_available`` is
    clamped to the balance rather than rejected. The total is floored at
    zero; excess discount or redemption is never refunded.

    Raises:
        InvalidCartError: Malformed cart, rate outside 0-100 or negative
            redemption request
    """
    lines = parse_items(items)

    rate = Decimal(str(discount_rate))
    if not rate.is_finite() or not Decimal("0") <= rate <= Decimal("100"):
        raise InvalidCartError("Discount rate must be between 0 and 100", discount_rate=str(rate))

    requested = points_to_redeem or 0
    if isinstance(requested, bool) or not isinstance(requested, int) or requested < 0:
        raise InvalidCartError("Points to redeem must be a non-negative integer")

    for index, line in enumerate(lines):
        if line.total > MAX_AMOUNT:
            raise InvalidCartError("Line total is too large", line=index)
    subtotal = sum((line.total for line in lines), Decimal("0"))
    if subtotal > MAX_AMOUNT:
        raise InvalidCartError("Order subtotal is too large")
    discount_amount = (subtotal * rate / 100).quantize(CENT, rounding=ROUND_HALF_UP)

    points_redeemed = min(requested, max(0, points_available))
    redemption_value = config.redemption_value(points_redeemed)

    total = max(Decimal("0.00"), subtotal - discount_amount - redemption_value)

    return PriceQuote(
        lines=lines,
        subtotal=subtotal,
        discount_rate=rate,
        discount_amount=discount_amount,
        points_requested=requested,
        points_redeemed=points_redeemed,
        redemption_value=redemption_value,
        total=total.quantize(CENT),
    )


def effective_discount_rate(customer, config: ConfigSnapshot) -> Decimal:
    """Customer's own discount rate, else the rate configured for its type."""
    if customer.discount_rate is not None:
        return Decimal(customer.discount_rate)
    return config.discount_rate_for(customer.customer_type)


def _to_money(raw) -> Decimal | None:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw))
        if not value.is_finite():
            return None
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return None
