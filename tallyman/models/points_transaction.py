"""PointsTransaction model: the loyalty ledger."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class TransactionType(models.TextChoices):
    EARN = "earn", _("Earn")
    REDEEM = "redeem", _("Redeem")
    ADJUST = "adjust", _("Adjustment")


class PointsTransaction(models.Model):
    """
    Immutable record of a points balance change.

    Append-only: never modified or deleted. The sum of a customer's
    amounts equals Customer.points.
    """

    customer = models.ForeignKey(
        "tallyman.Customer",
        on_delete=models.PROTECT,
        related_name="points_transactions",
        verbose_name=_("customer"),
    )
    order = models.ForeignKey(
        "tallyman.Order",
        on_delete=models.PROTECT,
        related_name="points_transactions",
        null=True,
        blank=True,
        verbose_name=_("order"),
    )

    transaction_type = models.CharField(
        _("type"),
        max_length=20,
        choices=TransactionType.choices,
    )
    amount = models.IntegerField(
        _("amount"),
        help_text=_("Positive for earn, negative for redeem"),
    )
    balance_after = models.IntegerField(_("balance after"))

    description = models.CharField(_("description"), max_length=200)
    reference = models.CharField(
        _("reference"),
        max_length=100,
        blank=True,
        help_text=_("External reference (e.g. order:123)"),
    )

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    created_by = models.CharField(_("created by"), max_length=100, blank=True)

    class Meta:
        verbose_name = _("points transaction")
        verbose_name_plural = _("points transactions")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["customer", "-created_at"], name="tallyman_ptx_cust_created"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(amount=0),
                name="tallyman_pointstransaction_amount_non_zero",
            ),
        ]

    def __str__(self):
        sign = "+" if self.amount > 0 else ""
        return f"{sign}{self.amount}pts: {self.description}"
