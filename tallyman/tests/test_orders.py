"""
Tests for order settlement:
- Atomic create (order + items + redemption)
- Rollback on invalid carts and stale balances
- Status transitions and the points award
- Award failure, reconciliation and retry
- Listing
"""

from decimal import Decimal
from unittest import mock

import pytest

from tallyman.exceptions import (
    CustomerNotFoundError,
    InsufficientPointsError,
    InvalidCartError,
    InvalidTransitionError,
    OrderNotFoundError,
    PointsAwardError,
    TallymanError,
)
from tallyman.models import (
    Customer,
    Order,
    OrderItem,
    OrderStatus,
    PointsTransaction,
    SyncStatus,
    TransactionType,
)
from tallyman.services.ledger import LoyaltyLedger
from tallyman.services.orders import OrderService
from tallyman.signals import order_created, points_award_failed, points_awarded


pytestmark = pytest.mark.django_db


@pytest.fixture
def order(customer, cart):
    return OrderService.create(
        customer_id=customer.pk,
        customer_name=customer.name,
        items=cart,
        points_to_redeem=50,
    )


# ═══════════════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════════════


class TestCreate:
    def test_settles_order_with_redemption(self, customer, cart):
        order = OrderService.create(
            customer_id=customer.pk,
            customer_name="Jane Builder",
            items=cart,
            points_to_redeem=50,
        )

        assert order.amount == Decimal("120.00")
        assert order.discount_rate == Decimal("10")
        assert order.discount_amount == Decimal("12.00")
        assert order.points_redeemed == 50
        assert order.redemption_value == Decimal("0.50")
        assert order.total == Decimal("107.50")
        assert order.status == OrderStatus.PENDING
        assert order.sync_status == SyncStatus.LOCAL
        assert order.points_awarded_at is None
        assert order.items.count() == 2

        customer.refresh_from_db()
        assert customer.points == 100

        redemption = PointsTransaction.objects.get(order=order)
        assert redemption.transaction_type == TransactionType.REDEEM
        assert redemption.amount == -50
        assert redemption.balance_after == 100
        assert redemption.reference == f"order:{order.pk}"
        assert order.invoice_ref in redemption.description

    def test_invoice_refs_are_unique(self, customer, cart):
        first = OrderService.create(customer.pk, "A", cart)
        second = OrderService.create(customer.pk, "A", cart)

        assert first.invoice_ref != second.invoice_ref
        assert first.invoice_ref.startswith("INV-")

    def test_no_redemption_writes_no_ledger_row(self, customer, cart):
        order = OrderService.create(customer.pk, "Jane", cart)

        assert order.points_redeemed == 0
        assert not PointsTransaction.objects.filter(order=order).exists()
        assert LoyaltyLedger.get_balance(customer.pk) == 150

    def test_redemption_clamped_to_balance(self, customer, cart):
        order = OrderService.create(customer.pk, "Jane", cart, points_to_redeem=1000)

        assert order.points_redeemed == 150
        assert order.redemption_value == Decimal("1.50")
        assert LoyaltyLedger.get_balance(customer.pk) == 0

    def test_customer_name_is_a_snapshot(self, customer, cart):
        from tallyman.services import customer as customer_service

        order = OrderService.create(customer.pk, "Jane at the counter", cart)
        customer_service.update(customer.pk, name="Jane Renamed")

        order.refresh_from_db()
        assert order.customer_name == "Jane at the counter"

    def test_blank_customer_name_uses_record(self, customer, cart):
        order = OrderService.create(customer.pk, "", cart)

        assert order.customer_name == "Jane Builder"

    def test_discount_code_is_recorded(self, customer, cart):
        order = OrderService.create(customer.pk, "Jane", cart, discount_code="SPRING10")

        assert order.discount_code == "SPRING10"

    def test_type_rate_from_settings(self, designer, discount_rates, cart):
        order = OrderService.create(designer.pk, "Dana", cart)

        assert order.discount_rate == Decimal("15")
        assert order.total == Decimal("102.00")

    def test_unknown_customer(self, db, cart):
        with pytest.raises(CustomerNotFoundError):
            OrderService.create(999999, "Ghost", cart)

    def test_inactive_customer(self, customer, cart):
        Customer.objects.filter(pk=customer.pk).update(is_active=False)

        with pytest.raises(CustomerNotFoundError):
            OrderService.create(customer.pk, "Jane", cart)

    def test_invalid_cart_writes_nothing(self, customer):
        with pytest.raises(InvalidCartError):
            OrderService.create(
                customer.pk,
                "Jane",
                [{"name": "Plank", "quantity": 0, "unit_price": 10}],
                points_to_redeem=50,
            )

        assert Order.objects.count() == 0
        assert OrderItem.objects.count() == 0
        assert LoyaltyLedger.get_balance(customer.pk) == 150

    def test_oversized_cart_writes_nothing(self, customer):
        with pytest.raises(InvalidCartError):
            OrderService.create(
                customer.pk,
                "Jane",
                [{"name": "Plank", "quantity": 10**30, "unit_price": "1"}],
                points_to_redeem=50,
            )

        assert Order.objects.count() == 0
        assert LoyaltyLedger.get_balance(customer.pk) == 150

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"customer_name": "J" * 201}, "customer_name"),
            ({"customer_name": "Jane", "discount_code": "C" * 51}, "discount_code"),
        ],
    )
    def test_overlong_text_rejected(self, customer, cart, kwargs, field):
        with pytest.raises(InvalidCartError) as exc_info:
            OrderService.create(customer.pk, items=cart, points_to_redeem=50, **kwargs)

        assert exc_info.value.data == {"field": field}
        assert Order.objects.count() == 0
        assert LoyaltyLedger.get_balance(customer.pk) == 150

    def test_order_created_signal(self, customer, cart):
        received = []

        def handler(sender, order, quote, **kwargs):
            received.append((order.pk, quote.total))

        order_created.connect(handler)
        try:
            order = OrderService.create(customer.pk, "Jane", cart)
        finally:
            order_created.disconnect(handler)

        assert received == [(order.pk, Decimal("108.00"))]


class TestStaleBalance:
    """Two quotes priced against the same balance: only one can settle."""

    def test_second_settlement_rolls_back(self, customer_100, cart):
        first = OrderService.quote(customer_100, cart, points_to_redeem=80)
        second = OrderService.quote(customer_100, cart, points_to_redeem=50)
        assert first.points_redeemed == 80
        assert second.points_redeemed == 50

        OrderService.settle(customer_100, first)
        with pytest.raises(InsufficientPointsError):
            OrderService.settle(customer_100, second)

        assert Order.objects.count() == 1
        assert OrderItem.objects.count() == 2
        assert LoyaltyLedger.verify(customer_100.pk) == 20

    def test_requote_clamps_to_fresh_balance(self, customer_100, cart):
        OrderService.create(customer_100.pk, "Bob", cart, points_to_redeem=80)

        order = OrderService.create(customer_100.pk, "Bob", cart, points_to_redeem=50)

        assert order.points_redeemed == 20
        assert LoyaltyLedger.verify(customer_100.pk) == 0


# ═══════════════════════════════════════════════════════════════════
# Status transitions and award
# ═══════════════════════════════════════════════════════════════════


class TestUpdateStatus:
    def test_complete_awards_points(self, customer, order):
        updated = OrderService.update_status(order.pk, OrderStatus.COMPLETED)

        assert updated.status == OrderStatus.COMPLETED
        assert updated.status_changed_at is not None
        assert updated.points_awarded == 107
        assert updated.points_awarded_at is not None

        earn = PointsTransaction.objects.get(order=order, transaction_type=TransactionType.EARN)
        assert earn.amount == 107
        assert earn.balance_after == 207
        assert LoyaltyLedger.verify(customer.pk) == 207

    def test_cancel_awards_nothing(self, customer, order):
        updated = OrderService.update_status(order.pk, "cancelled")

        assert updated.status == OrderStatus.CANCELLED
        assert updated.points_awarded_at is None
        assert LoyaltyLedger.get_balance(customer.pk) == 100

    def test_pending_to_pending_is_noop(self, order):
        updated = OrderService.update_status(order.pk, "pending")

        assert updated.status == OrderStatus.PENDING
        assert updated.status_changed_at is None

    def test_completed_is_terminal(self, customer, order):
        OrderService.update_status(order.pk, "completed")

        with pytest.raises(InvalidTransitionError):
            OrderService.update_status(order.pk, "completed")
        with pytest.raises(InvalidTransitionError):
            OrderService.update_status(order.pk, "pending")

        # awarded exactly once
        assert PointsTransaction.objects.filter(
            order=order, transaction_type=TransactionType.EARN
        ).count() == 1
        assert LoyaltyLedger.get_balance(customer.pk) == 207

    def test_cancelled_is_terminal(self, order):
        OrderService.update_status(order.pk, "cancelled")

        with pytest.raises(InvalidTransitionError, match="INVALID_TRANSITION"):
            OrderService.update_status(order.pk, "completed")

    def test_unknown_status(self, order):
        with pytest.raises(TallymanError, match="INVALID_STATUS"):
            OrderService.update_status(order.pk, "shipped")

    def test_unknown_order(self, db):
        with pytest.raises(OrderNotFoundError):
            OrderService.update_status(999999, "completed")

    def test_points_awarded_signal(self, order):
        received = []

        def handler(sender, order, points, **kwargs):
            received.append(points)

        points_awarded.connect(handler)
        try:
            OrderService.update_status(order.pk, "completed")
        finally:
            points_awarded.disconnect(handler)

        assert received == [107]


class TestAwardPoints:
    def test_idempotent(self, customer, order):
        OrderService.update_status(order.pk, "completed")

        assert OrderService.award_points(order.pk) is None
        assert LoyaltyLedger.get_balance(customer.pk) == 207

    def test_requires_completed_order(self, order):
        with pytest.raises(TallymanError, match="ORDER_NOT_COMPLETED"):
            OrderService.award_points(order.pk)

    def test_zero_point_order_is_stamped(self, customer):
        order = OrderService.create(
            customer.pk,
            "Jane",
            [{"name": "Washer", "quantity": 1, "unit_price": "0.50"}],
        )

        updated = OrderService.update_status(order.pk, "completed")

        assert updated.points_awarded == 0
        assert updated.points_awarded_at is not None
        assert not PointsTransaction.objects.filter(order=order).exists()


class TestAwardFailure:
    """Completion commits even when the award fails; the award is retryable."""

    def _complete_with_failing_award(self, order):
        with mock.patch.object(
            LoyaltyLedger, "record_earn", side_effect=RuntimeError("ledger down")
        ):
            with pytest.raises(PointsAwardError) as exc_info:
                OrderService.update_status(order.pk, "completed")
        return exc_info.value

    def test_order_stays_completed_and_unawarded(self, customer, order):
        exc = self._complete_with_failing_award(order)

        assert exc.order.pk == order.pk
        assert exc.code == "POINTS_AWARD_FAILED"
        order.refresh_from_db()
        assert order.status == OrderStatus.COMPLETED
        assert order.awaiting_award
        assert OrderService.unawarded() == [order]
        assert LoyaltyLedger.verify(customer.pk) == 100

    def test_failure_signal(self, order):
        received = []

        def handler(sender, order, error, **kwargs):
            received.append(type(error))

        points_award_failed.connect(handler)
        try:
            self._complete_with_failing_award(order)
        finally:
            points_award_failed.disconnect(handler)

        assert received == [RuntimeError]

    def test_retry_award(self, customer, order):
        self._complete_with_failing_award(order)

        tx = OrderService.award_points(order.pk)

        assert tx.amount == 107
        assert OrderService.unawarded() == []
        assert LoyaltyLedger.verify(customer.pk) == 207

    def test_retry_awards_report(self, customer, order):
        self._complete_with_failing_award(order)

        report = OrderService.retry_awards()

        assert [o.pk for o in report.awarded] == [order.pk]
        assert report.awarded[0].points_awarded == 107
        assert report.failed == []
        assert OrderService.retry_awards().awarded == []

    def test_retry_awards_continues_past_unexpected_errors(self, customer, cart):
        orders = [OrderService.create(customer.pk, "Jane", cart) for _ in range(2)]
        for order in orders:
            self._complete_with_failing_award(order)

        with mock.patch.object(
            LoyaltyLedger, "record_earn", side_effect=RuntimeError("db down")
        ):
            report = OrderService.retry_awards()

        assert report.awarded == []
        assert [o.pk for o, _ in report.failed] == [o.pk for o in orders]
        for _, error in report.failed:
            assert isinstance(error, PointsAwardError)
            assert error.data["reason"] == "db down"
            assert isinstance(error.__cause__, RuntimeError)

        assert len(OrderService.retry_awards().awarded) == 2
        assert LoyaltyLedger.verify(customer.pk) == 150 + 108 + 108


# ═══════════════════════════════════════════════════════════════════
# Reads
# ═══════════════════════════════════════════════════════════════════


class TestReads:
    def test_get(self, order):
        found = OrderService.get(order.pk)

        assert found.invoice_ref == order.invoice_ref
        assert len(found.items.all()) == 2

    def test_get_missing(self, db):
        assert OrderService.get(999999) is None

    def test_list_newest_first_with_pagination(self, customer, cart):
        orders = [OrderService.create(customer.pk, "Jane", cart) for _ in range(5)]

        page = OrderService.list_orders(page=1, limit=2)

        assert page.total == 5
        assert page.total_pages == 3
        assert [o.pk for o in page.data] == [orders[4].pk, orders[3].pk]

        last = OrderService.list_orders(page=3, limit=2)
        assert [o.pk for o in last.data] == [orders[0].pk]

    def test_list_filters(self, customer, customer_100, cart):
        mine = OrderService.create(customer.pk, "Jane", cart)
        OrderService.create(customer_100.pk, "Bob", cart)
        OrderService.update_status(mine.pk, "cancelled")

        assert [o.pk for o in OrderService.list_orders(customer_id=customer.pk).data] == [mine.pk]
        assert [o.pk for o in OrderService.list_orders(status="cancelled").data] == [mine.pk]
        assert OrderService.list_orders(status="completed").total == 0

    def test_list_limit_is_capped(self, db):
        page = OrderService.list_orders(limit=10_000)

        assert page.limit == 100
        assert page.data == []
        assert page.total_pages == 0
