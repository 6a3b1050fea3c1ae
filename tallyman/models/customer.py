"""Customer model.

Customer.points is a cache of the loyalty ledger: it must always equal the
sum of the customer's PointsTransaction amounts. Only
tallyman.services.ledger.LoyaltyLedger writes it.
"""

import uuid as uuid_lib

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class CustomerType(models.TextChoices):
    REGULAR = "regular", _("Regular")
    CONTRACTOR = "contractor", _("Contractor")
    DESIGNER = "designer", _("Designer")
    WHOLESALE = "wholesale", _("Wholesale")
    OTHER = "other", _("Other")


_PERCENT_VALIDATORS = [MinValueValidator(0), MaxValueValidator(100)]


class Customer(models.Model):
    """
    Registered customer.

    discount_rate overrides the rate configured for the customer type;
    leave it empty to follow the configuration.
    """

    code = models.CharField(
        _("code"),
        max_length=50,
        unique=True,
        help_text=_("Unique customer code (e.g. CUST-001)"),
    )
    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)

    name = models.CharField(_("name"), max_length=200)
    email = models.EmailField(_("email"), blank=True, db_index=True)
    phone = models.CharField(_("phone"), max_length=30, blank=True, db_index=True)
    customer_type = models.CharField(
        _("type"),
        max_length=20,
        choices=CustomerType.choices,
        default=CustomerType.REGULAR,
    )

    # Pricing
    discount_rate = models.DecimalField(
        _("discount rate"),
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=_PERCENT_VALIDATORS,
        help_text=_("Percent (0-100). Empty uses the rate configured for the type."),
    )
    custom_discount_code = models.CharField(_("custom discount code"), max_length=50, blank=True)
    custom_discount_rate = models.DecimalField(
        _("custom discount rate"),
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=_PERCENT_VALIDATORS,
    )

    # Loyalty balance (ledger cache)
    points = models.IntegerField(_("points"), default=0, editable=False)

    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    notes = models.TextField(_("notes"), blank=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)
    created_by = models.CharField(_("created by"), max_length=255, blank=True)

    class Meta:
        verbose_name = _("customer")
        verbose_name_plural = _("customers")
        ordering = ["name"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(points__gte=0),
                name="tallyman_customer_points_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(discount_rate__isnull=True)
                | models.Q(discount_rate__gte=0, discount_rate__lte=100),
                name="tallyman_customer_discount_rate_percent",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"
