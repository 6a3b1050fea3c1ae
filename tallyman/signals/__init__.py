"""
Tallyman signals: public event API.

Emitted signals:
- customer_created: Emitted by services.customer.create()
- customer_updated: Emitted by services.customer.update()
- order_created: Emitted by OrderService.settle() after commit
- order_status_changed: Emitted by OrderService.update_status() after commit
- points_awarded: Emitted by OrderService.award_points() after commit
- points_award_failed: Emitted when a completion's award fails
"""

from django.dispatch import Signal

# Customer signals (emitted by services)
customer_created = Signal()  # sender=Customer
customer_updated = Signal()  # sender=Customer, changes=dict

# Order signals
order_created = Signal()  # sender=Order, order=Order, quote=PriceQuote
order_status_changed = Signal()  # sender=Order, order=Order, old_status=str, new_status=str
points_awarded = Signal()  # sender=Order, order=Order, points=int, transaction=PointsTransaction|None
points_award_failed = Signal()  # sender=Order, order=Order, error=Exception
