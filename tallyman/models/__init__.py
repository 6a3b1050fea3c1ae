"""Tallyman models."""

from tallyman.models.customer import Customer, CustomerType
from tallyman.models.order import Order, OrderItem, OrderStatus, SyncStatus, TERMINAL_STATUSES
from tallyman.models.points_transaction import PointsTransaction, TransactionType
from tallyman.models.system_setting import SystemSetting

__all__ = [
    "Customer",
    "CustomerType",
    # Orders
    "Order",
    "OrderItem",
    "OrderStatus",
    "SyncStatus",
    "TERMINAL_STATUSES",
    # Ledger
    "PointsTransaction",
    "TransactionType",
    # Configuration store
    "SystemSetting",
]
