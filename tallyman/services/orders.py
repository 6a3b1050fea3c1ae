"""Order settlement: pricing, persistence, redemption and points award.

Two independent atomic units:

    settle()        Order + OrderItems + REDEEM ledger row
    award_points()  EARN ledger row + award marker on the order

update_status() commits the status change first and only then runs
award_points(). A failed award leaves the order completed and unawarded;
unawarded() lists those orders and retry_awards() retries them.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field

from django.db import transaction
from django.utils import timezone

from tallyman.conf import config_snapshot, tallyman_settings
from tallyman.exceptions import (
    CustomerNotFoundError,
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
)
from tallyman.services import pricing
from tallyman.services.ledger import LoyaltyLedger
from tallyman.signals import (
    order_created,
    order_status_changed,
    points_award_failed,
    points_awarded,
)

logger = logging.getLogger(__name__)


@dataclass
class OrderPage:
    """One page of orders."""

    data: list[Order]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass
class AwardRetryReport:
    """Outcome of retrying completed-but-unawarded orders."""

    awarded: list[Order] = field(default_factory=list)
    failed: list[tuple[Order, TallymanError]] = field(default_factory=list)


class OrderService:
    """
    Order settlement engine.

    Uses @classmethod for extensibility (consistent with other services).

    CORE:
        create(...)           - Price and settle an order atomically
        update_status(id, s)  - Transition status; award points on completion
        award_points(id)      - Award points for a completed order (idempotent)

    READ:
        get(id), list_orders(...), unawarded()
    """

    # ======================================================================
    # Settlement
    # ======================================================================

    @classmethod
    def quote(
        cls,
        customer: Customer,
        items,
        points_to_redeem: int | None = None,
        config=None,
    ) -> pricing.PriceQuote:
        """Price a cart against the customer's current rate and balance."""
        config = config or config_snapshot()
        return pricing.calculate(
            items,
            discount_rate=pricing.effective_discount_rate(customer, config),
            points_to_redeem=points_to_redeem,
            points_available=customer.points,
            config=config,
        )

    @classmethod
    def create(
        cls,
        customer_id: int,
        customer_name: str,
        items,
        discount_code: str | None = None,
        points_to_redeem: int | None = None,
        created_by: str = "",
    ) -> Order:
        """
        Price a cart and persist the order.

        Args:
            customer_id: Customer primary key
            customer_name: Name snapshot stored on the order
            items: [{"name", "quantity", "unit_price"}, ...]
            discount_code: Code recorded on the order (not validated here)
            points_to_redeem: Requested redemption, clamped to the balance
            created_by: Who placed the order

        Returns:
            The persisted Order

        Raises:
            CustomerNotFoundError: Unknown or inactive customer
            InvalidCartError: Malformed or oversized cart, or customer_name /
                discount_code longer than their columns (nothing is written)
            InsufficientPointsError: Balance dropped below the redemption
                before commit (nothing is written)
        """
        customer = cls._get_customer(customer_id)
        quote = cls.quote(customer, items, points_to_redeem)
        return cls.settle(
            customer,
            quote,
            customer_name=customer_name,
            discount_code=discount_code,
            created_by=created_by,
        )

    @classmethod
    def settle(
        cls,
        customer: Customer,
        quote: pricing.PriceQuote,
        customer_name: str = "",
        discount_code: str | None = None,
        created_by: str = "",
    ) -> Order:
        """
        Persist a priced order as one atomic unit.

        Creates the Order, its items and, when points are redeemed, the
        REDEEM ledger entry. Any failure rolls back everything.
        """
        customer_name = customer_name or customer.name
        discount_code = discount_code or ""
        cls._check_length("customer_name", customer_name)
        cls._check_length("discount_code", discount_code)

        with transaction.atomic():
            order = Order.objects.create(
                customer=customer,
                customer_name=customer_name,
                invoice_ref=cls._new_invoice_ref(),
                amount=quote.subtotal,
                discount_rate=quote.discount_rate,
                discount_amount=quote.discount_amount,
                points_redeemed=quote.points_redeemed,
                redemption_value=quote.redemption_value,
                total=quote.total,
                status=OrderStatus.PENDING,
                sync_status=SyncStatus.LOCAL,
                discount_code=discount_code,
                created_by=created_by,
            )
            OrderItem.objects.bulk_create(
                [
                    OrderItem(
                        order=order,
                        name=line.name,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        total=line.total,
                    )
                    for line in quote.lines
                ]
            )
            if quote.points_redeemed > 0:
                LoyaltyLedger.record_redemption(
                    customer.pk,
                    quote.points_redeemed,
                    order=order,
                    created_by=created_by,
                )

        logger.info(
            "Order %s settled for customer %s: total=%s redeemed=%s",
            order.invoice_ref,
            customer.code,
            order.total,
            order.points_redeemed,
        )
        order_created.send(sender=Order, order=order, quote=quote)
        return order

    # ======================================================================
    # Status
    # ======================================================================

    @classmethod
    def update_status(cls, order_id: int, status: str) -> Order:
        """
        Transition an order's status.

        completed and cancelled are terminal. Only pending -> completed
        awards points, in a second transaction after the status commit.

        Raises:
            TallymanError: INVALID_STATUS for unknown status values
            OrderNotFoundError: Unknown order
            InvalidTransitionError: Order already completed or cancelled
            PointsAwardError: Status committed but the award failed
                (the exception carries the order)
        """
        if status not in OrderStatus.values:
            raise TallymanError("INVALID_STATUS", status=status)

        with transaction.atomic():
            order = cls._get_order_for_update(order_id)
            old_status = order.status

            if order.is_terminal:
                logger.warning(
                    "Rejected transition %s -> %s for order %s",
                    old_status,
                    status,
                    order.invoice_ref,
                )
                raise InvalidTransitionError(
                    order_id=order.pk,
                    current=old_status,
                    requested=status,
                )
            if old_status == status:
                return order

            order.status = status
            order.status_changed_at = timezone.now()
            order.save(update_fields=["status", "status_changed_at", "updated_at"])

        order_status_changed.send(
            sender=Order, order=order, old_status=old_status, new_status=status
        )

        if status == OrderStatus.COMPLETED:
            try:
                cls.award_points(order.pk)
            except Exception as exc:
                logger.warning(
                    "Order %s completed but points award failed: %s", order.invoice_ref, exc
                )
                points_award_failed.send(sender=Order, order=order, error=exc)
                raise PointsAwardError(order=order, order_id=order.pk) from exc
            order.refresh_from_db()

        return order

    @classmethod
    def award_points(cls, order_id: int) -> PointsTransaction | None:
        """
        Award points for a completed order.

        Idempotent: an order already stamped with points_awarded_at is left
        untouched. Orders whose total earns zero points are stamped without
        a ledger row.

        Returns:
            The EARN PointsTransaction, or None when nothing was written

        Raises:
            OrderNotFoundError: Unknown order
            TallymanError: ORDER_NOT_COMPLETED if the order is not completed
        """
        config = config_snapshot()

        with transaction.atomic():
            order = cls._get_order_for_update(order_id)
            if order.status != OrderStatus.COMPLETED:
                raise TallymanError("ORDER_NOT_COMPLETED", order_id=order.pk, status=order.status)
            if order.points_awarded_at is not None:
                return None

            points = config.points_to_award(order.total)
            tx = LoyaltyLedger.record_earn(order.customer_id, points, order=order)

            order.points_awarded = points
            order.points_awarded_at = timezone.now()
            order.save(update_fields=["points_awarded", "points_awarded_at", "updated_at"])

        logger.info("Awarded %s points for order %s", points, order.invoice_ref)
        points_awarded.send(sender=Order, order=order, points=points, transaction=tx)
        return tx

    @classmethod
    def unawarded(cls) -> list[Order]:
        """Completed orders whose points award never committed."""
        return list(
            Order.objects.filter(
                status=OrderStatus.COMPLETED,
                points_awarded_at__isnull=True,
            ).order_by("status_changed_at", "pk")
        )

    @classmethod
    def retry_awards(cls) -> AwardRetryReport:
        """
        Retry the award for every completed-but-unawarded order.

        One failing order never stops the batch: unexpected errors are logged
        and reported as PointsAwardError in report.failed.
        """
        report = AwardRetryReport()
        for order in cls.unawarded():
            try:
                cls.award_points(order.pk)
            except TallymanError as exc:
                logger.warning("Award retry failed for order %s: %s", order.invoice_ref, exc)
                report.failed.append((order, exc))
            except Exception as exc:
                logger.exception("Award retry failed for order %s", order.invoice_ref)
                error = PointsAwardError(order=order, order_id=order.pk, reason=str(exc))
                error.__cause__ = exc
                report.failed.append((order, error))
            else:
                order.refresh_from_db()
                report.awarded.append(order)
        return report

    # ======================================================================
    # Reads
    # ======================================================================

    @classmethod
    def get(cls, order_id: int) -> Order | None:
        """Order with items and customer, or None."""
        try:
            return (
                Order.objects.select_related("customer")
                .prefetch_related("items")
                .get(pk=order_id)
            )
        except (Order.DoesNotExist, ValueError):
            return None

    @classmethod
    def list_orders(
        cls,
        page: int = 1,
        limit: int | None = None,
        status: str | None = None,
        customer_id: int | None = None,
    ) -> OrderPage:
        """Orders newest first, optionally filtered by status and customer."""
        limit = limit or tallyman_settings.DEFAULT_PAGE_SIZE
        limit = max(1, min(limit, tallyman_settings.MAX_PAGE_SIZE))
        page = max(1, page)

        qs = Order.objects.prefetch_related("items")
        if status:
            qs = qs.filter(status=status)
        if customer_id:
            qs = qs.filter(customer_id=customer_id)

        offset = (page - 1) * limit
        return OrderPage(
            data=list(qs[offset : offset + limit]),
            total=qs.count(),
            page=page,
            limit=limit,
        )

    # ======================================================================
    # Internals
    # ======================================================================

    @classmethod
    def _get_customer(cls, customer_id: int) -> Customer:
        try:
            return Customer.objects.get(pk=customer_id, is_active=True)
        except (Customer.DoesNotExist, ValueError):
            raise CustomerNotFoundError(customer_id=customer_id)

    @classmethod
    def _get_order_for_update(cls, order_id: int) -> Order:
        """Order row with a row-level lock. MUST be called inside transaction.atomic()."""
        try:
            return Order.objects.select_for_update().get(pk=order_id)
        except (Order.DoesNotExist, ValueError):
            raise OrderNotFoundError(order_id=order_id)

    @classmethod
    def _check_length(cls, field_name: str, value: str) -> None:
        max_length = Order._meta.get_field(field_name).max_length
        if len(value) > max_length:
            raise InvalidCartError(
                f"{field_name} exceeds {max_length} characters", field=field_name
            )

    @classmethod
    def _new_invoice_ref(cls) -> str:
        today = timezone.now().strftime("%Y%m%d")
        return f"{tallyman_settings.INVOICE_PREFIX}-{today}-{uuid.uuid4().hex[:8].upper()}"
