"""Pytest fixtures for Tallyman tests."""

from decimal import Decimal

import pytest

from tallyman.models import Customer, CustomerType, SystemSetting
from tallyman.services.ledger import LoyaltyLedger


def _with_points(customer, points):
    """Give a customer an opening balance through the ledger."""
    if points:
        LoyaltyLedger.adjust(customer.pk, points, "Opening balance")
        customer.refresh_from_db()
    return customer


@pytest.fixture
def customer(db):
    """Customer with 150 points and a personal 10% discount."""
    cust = Customer.objects.create(
        code="CUST-001",
        name="Jane Builder",
        email="jane@example.com",
        phone="5551234567",
        customer_type=CustomerType.REGULAR,
        discount_rate=Decimal("10"),
    )
    return _with_points(cust, 150)


@pytest.fixture
def customer_100(db):
    """Customer with exactly 100 points and no discount."""
    cust = Customer.objects.create(
        code="CUST-100",
        name="Bob Exact",
        customer_type=CustomerType.REGULAR,
    )
    return _with_points(cust, 100)


@pytest.fixture
def designer(db):
    """Designer without a personal rate (uses the configured type rate)."""
    return Customer.objects.create(
        code="DES-001",
        name="Dana Designer",
        customer_type=CustomerType.DESIGNER,
    )


@pytest.fixture
def cart():
    return [
        {"name": "Oak plank", "quantity": 2, "unit_price": "50.00"},
        {"name": "Wood glue", "quantity": 1, "unit_price": "20.00"},
    ]


@pytest.fixture
def discount_rates(db):
    return SystemSetting.objects.create(
        key="discount_rates",
        value={"designer": 15, "contractor": 30},
    )
