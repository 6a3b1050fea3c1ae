"""
Django Tallyman - Order settlement and loyalty ledger.

Usage:
    from tallyman import OrderService, LoyaltyLedger

    order = OrderService.create(
        customer_id=cust.pk,
        customer_name=cust.name,
        items=[{"name": "Tile", "quantity": 2, "unit_price": "50.00"}],
        points_to_redeem=50,
    )
    OrderService.update_status(order.pk, "completed")

    LoyaltyLedger.verify(cust.pk)
"""


def __getattr__(name):
    if name == "OrderService":
        from tallyman.services.orders import OrderService

        return OrderService
    if name == "LoyaltyLedger":
        from tallyman.services.ledger import LoyaltyLedger

        return LoyaltyLedger
    if name == "SettingsService":
        from tallyman.services.settings import SettingsService

        return SettingsService
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["OrderService", "LoyaltyLedger", "SettingsService"]
__version__ = "0.1.0"
