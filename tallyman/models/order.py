"""Order and OrderItem models."""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class OrderStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    COMPLETED = "completed", _("Completed")
    CANCELLED = "cancelled", _("Cancelled")


class SyncStatus(models.TextChoices):
    """External bookkeeping sync state (independent of OrderStatus)."""

    LOCAL = "local", _("Local only")
    PENDING = "pending", _("Sync pending")
    SYNCED = "synced", _("Synced")
    FAILED = "failed", _("Sync failed")


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

_MONEY = {"max_digits": 12, "decimal_places": 2}


class Order(models.Model):
    """
    Settled order.

    Created once by OrderService.settle(); afterwards only status, the
    award marker and sync_status change. customer_name is a snapshot taken
    at creation and is never refreshed from the customer record.
    """

    customer = models.ForeignKey(
        "tallyman.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
        verbose_name=_("customer"),
    )
    customer_name = models.CharField(_("customer name"), max_length=200)
    invoice_ref = models.CharField(_("invoice reference"), max_length=50, unique=True)

    # Pricing snapshot
    amount = models.DecimalField(_("subtotal"), **_MONEY)
    discount_rate = models.DecimalField(
        _("discount rate"), max_digits=5, decimal_places=2, default=Decimal("0")
    )
    discount_amount = models.DecimalField(_("discount"), default=Decimal("0"), **_MONEY)
    points_redeemed = models.IntegerField(_("points redeemed"), default=0)
    redemption_value = models.DecimalField(_("redemption value"), default=Decimal("0"), **_MONEY)
    total = models.DecimalField(_("total"), **_MONEY)
    discount_code = models.CharField(_("discount code"), max_length=50, blank=True)

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
    )
    status_changed_at = models.DateTimeField(_("status changed at"), null=True, blank=True)
    sync_status = models.CharField(
        _("sync status"),
        max_length=20,
        choices=SyncStatus.choices,
        default=SyncStatus.LOCAL,
    )

    # Award marker: set in the same transaction as the EARN ledger row
    points_awarded = models.IntegerField(_("points awarded"), null=True, blank=True)
    points_awarded_at = models.DateTimeField(_("points awarded at"), null=True, blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)
    created_by = models.CharField(_("created by"), max_length=255, blank=True)

    class Meta:
        verbose_name = _("order")
        verbose_name_plural = _("orders")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["customer", "-created_at"], name="tallyman_order_cust_created"),
            models.Index(fields=["status", "points_awarded_at"], name="tallyman_order_status_award"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total__gte=0),
                name="tallyman_order_total_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(amount__gte=0),
                name="tallyman_order_amount_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(points_redeemed__gte=0),
                name="tallyman_order_points_redeemed_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.invoice_ref} ({self.get_status_display()})"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def awaiting_award(self) -> bool:
        """Completed but the points award has not committed yet."""
        return self.status == OrderStatus.COMPLETED and self.points_awarded_at is None


class OrderItem(models.Model):
    """Order line. Immutable after creation."""

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
        verbose_name=_("order"),
    )
    name = models.CharField(_("name"), max_length=200)
    quantity = models.PositiveIntegerField(_("quantity"))
    unit_price = models.DecimalField(_("unit price"), **_MONEY)
    total = models.DecimalField(_("line total"), **_MONEY)

    class Meta:
        verbose_name = _("order item")
        verbose_name_plural = _("order items")
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="tallyman_orderitem_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(unit_price__gte=0),
                name="tallyman_orderitem_unit_price_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.name}"
