"""Customer service - records used by settlement.

Administrative edits only. points is never writable here: balances change
through tallyman.services.ledger.LoyaltyLedger.
"""

import logging

from django.db import transaction
from django.db.models import Q

from tallyman.exceptions import CustomerNotFoundError
from tallyman.models import Customer
from tallyman.signals import customer_created, customer_updated

logger = logging.getLogger(__name__)


def get(customer_id: int) -> Customer | None:
    """Get active customer by primary key."""
    try:
        return Customer.objects.get(pk=customer_id, is_active=True)
    except (Customer.DoesNotExist, ValueError):
        return None


def get_by_code(code: str) -> Customer | None:
    """Get active customer by unique code."""
    try:
        return Customer.objects.get(code=code, is_active=True)
    except Customer.DoesNotExist:
        return None


def search(query: str, customer_type: str | None = None, limit: int = 20) -> list[Customer]:
    """Search customers by name, code, phone, or email."""
    qs = Customer.objects.filter(is_active=True)

    if query:
        qs = qs.filter(
            Q(code__icontains=query)
            | Q(name__icontains=query)
            | Q(phone__icontains=query)
            | Q(email__icontains=query)
        )
    if customer_type:
        qs = qs.filter(customer_type=customer_type)

    return list(qs[:limit])


def create(
    code: str,
    name: str,
    customer_type: str = "regular",
    email: str = "",
    phone: str = "",
    discount_rate=None,
    **kwargs,
) -> Customer:
    """Create a new customer with a zero points balance."""
    kwargs.pop("points", None)

    with transaction.atomic():
        cust = Customer(
            code=code,
            name=name,
            customer_type=customer_type,
            email=email.lower().strip(),
            phone=phone,
            discount_rate=discount_rate,
            **kwargs,
        )
        cust.full_clean()
        cust.save()

    logger.info("Created customer %s", cust.code)
    customer_created.send(sender=Customer, customer=cust)
    return cust


UPDATABLE_FIELDS = {
    "name",
    "email",
    "phone",
    "customer_type",
    "discount_rate",
    "custom_discount_code",
    "custom_discount_rate",
    "notes",
    "is_active",
}


def update(customer_id: int, **fields) -> Customer:
    """
    Update customer fields (only whitelisted fields are accepted).

    Orders keep the customer_name captured at creation.

    Raises:
        CustomerNotFoundError: Unknown customer
    """
    try:
        cust = Customer.objects.get(pk=customer_id)
    except (Customer.DoesNotExist, ValueError):
        raise CustomerNotFoundError(customer_id=customer_id)

    changes = {}
    for key, value in fields.items():
        if key not in UPDATABLE_FIELDS:
            continue
        old_value = getattr(cust, key)
        if old_value != value:
            changes[key] = {"old": old_value, "new": value}
        setattr(cust, key, value)

    if changes:
        cust.full_clean()
        cust.save(update_fields=[*changes, "updated_at"])
        customer_updated.send(sender=Customer, customer=cust, changes=changes)
    return cust
