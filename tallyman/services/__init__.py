"""Tallyman services.

- customer: customer records (thin CRUD)
- pricing: cart pricing (pure)
- ledger: LoyaltyLedger, the only writer of points balances
- orders: OrderService, settlement and status transitions
- settings: SettingsService, the configuration store
"""

from tallyman.services import customer
from tallyman.services import pricing

__all__ = ["customer", "pricing"]
