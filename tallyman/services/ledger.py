"""Loyalty ledger: the only writer of Customer.points.

Every balance change is one guarded UPDATE of Customer.points plus one
PointsTransaction row carrying the same signed amount, in the same
transaction.
"""

import logging

from django.db import transaction
from django.db.models import F, Sum, Value
from django.db.models.functions import Coalesce
from django.db.transaction import TransactionManagementError
from django.utils import timezone

from tallyman.exceptions import (
    CustomerNotFoundError,
    InsufficientPointsError,
    LedgerInconsistencyError,
    TallymanError,
)
from tallyman.models import Customer, PointsTransaction, TransactionType

logger = logging.getLogger(__name__)


class LoyaltyLedger:
    """
    Points ledger operations.

    Uses @classmethod for extensibility (consistent with other services).

    record_redemption() and record_earn() join the caller's transaction and
    refuse to run outside one, so the balance change commits or rolls back
    together with the order mutation that caused it. adjust() is a
    standalone admin correction and opens its own transaction.
    """

    @classmethod
    def record_redemption(
        cls,
        customer_id: int,
        points: int,
        order=None,
        description: str = "",
        created_by: str = "",
    ) -> PointsTransaction | None:
        """
        Deduct redeemed points from the customer's balance.

        The balance is re-checked under the row lock, and the decrement is
        conditional on the balance still covering it, so a quote priced
        against a stale balance cannot overdraw.

        Args:
            customer_id: Customer primary key
            points: Points to redeem (0 is a no-op)
            order: Order the redemption belongs to
            description: Ledger text (defaults to one referencing the order)
            created_by: Who triggered the redemption

        Returns:
            Created PointsTransaction, or None for a zero amount

        Raises:
            InsufficientPointsError: If the committed balance is below points
            TransactionManagementError: If called outside transaction.atomic()
        """
        cls._require_atomic()
        points = cls._validate_points(points)
        if points == 0:
            return None

        customer = cls._get_customer_for_update(customer_id)
        updated = Customer.objects.filter(pk=customer.pk, points__gte=points).update(
            points=F("points") - points,
            updated_at=timezone.now(),
        )
        if not updated:
            raise InsufficientPointsError(
                customer_id=customer.pk,
                available=customer.points,
                requested=points,
            )

        if not description and order is not None:
            description = f"Redeemed for order {order.invoice_ref}"
        return cls._append(
            customer,
            TransactionType.REDEEM,
            -points,
            description or "Points redeemed",
            order=order,
            created_by=created_by,
        )

    @classmethod
    def record_earn(
        cls,
        customer_id: int,
        points: int,
        order=None,
        description: str = "",
        created_by: str = "",
    ) -> PointsTransaction | None:
        """
        Credit earned points to the customer's balance.

        Returns:
            Created PointsTransaction, or None for a zero amount

        Raises:
            TransactionManagementError: If called outside transaction.atomic()
        """
        cls._require_atomic()
        points = cls._validate_points(points)
        if points == 0:
            return None

        customer = cls._get_customer_for_update(customer_id)
        Customer.objects.filter(pk=customer.pk).update(
            points=F("points") + points,
            updated_at=timezone.now(),
        )

        if not description and order is not None:
            description = f"Order {order.invoice_ref}"
        return cls._append(
            customer,
            TransactionType.EARN,
            points,
            description or "Points earned",
            order=order,
            created_by=created_by,
        )

    @classmethod
    def adjust(
        cls,
        customer_id: int,
        delta: int,
        description: str,
        created_by: str = "",
    ) -> PointsTransaction:
        """
        Manual balance correction by an operator.

        Args:
            customer_id: Customer primary key
            delta: Signed, non-zero points change
            description: Reason for the adjustment
            created_by: Operator

        Raises:
            TallymanError: INVALID_POINTS for zero or non-integer delta
            InsufficientPointsError: If a negative delta exceeds the balance
        """
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise TallymanError("INVALID_POINTS", message="Adjustment must be a non-zero integer")

        with transaction.atomic():
            customer = cls._get_customer_for_update(customer_id)
            qs = Customer.objects.filter(pk=customer.pk)
            if delta < 0:
                qs = qs.filter(points__gte=-delta)
            if not qs.update(points=F("points") + delta, updated_at=timezone.now()):
                raise InsufficientPointsError(
                    customer_id=customer.pk,
                    available=customer.points,
                    requested=-delta,
                )
            tx = cls._append(
                customer,
                TransactionType.ADJUST,
                delta,
                description,
                created_by=created_by,
            )

        logger.info("Adjusted customer %s points by %+d: %s", customer.code, delta, description)
        return tx

    # ======================================================================
    # Queries and consistency
    # ======================================================================

    @classmethod
    def get_balance(cls, customer_id: int) -> int:
        """Current cached balance."""
        balance = Customer.objects.filter(pk=customer_id).values_list("points", flat=True).first()
        if balance is None:
            raise CustomerNotFoundError(customer_id=customer_id)
        return balance

    @classmethod
    def balance_from_ledger(cls, customer_id: int) -> int:
        """Sum of all ledger amounts for the customer."""
        return PointsTransaction.objects.filter(customer_id=customer_id).aggregate(
            total=Coalesce(Sum("amount"), Value(0))
        )["total"]

    @classmethod
    def verify(cls, customer_id: int) -> int:
        """
        Check that the cached balance equals the ledger sum.

        Returns:
            The verified balance

        Raises:
            CustomerNotFoundError: If the customer does not exist
            LedgerInconsistencyError: On mismatch (never repaired here)
        """
        balance = cls.get_balance(customer_id)
        ledger_sum = cls.balance_from_ledger(customer_id)
        if balance != ledger_sum:
            logger.error(
                "Ledger mismatch for customer %s: balance=%s ledger=%s",
                customer_id,
                balance,
                ledger_sum,
            )
            raise LedgerInconsistencyError(
                customer_id=customer_id,
                balance=balance,
                ledger_sum=ledger_sum,
            )
        return balance

    @classmethod
    def find_inconsistencies(cls) -> list[Customer]:
        """Customers whose balance differs from their ledger (annotated with ledger_sum)."""
        return list(
            Customer.objects.annotate(
                ledger_sum=Coalesce(Sum("points_transactions__amount"), Value(0))
            )
            .exclude(points=F("ledger_sum"))
            .order_by("pk")
        )

    @classmethod
    def history(cls, customer_id: int, limit: int = 50) -> list[PointsTransaction]:
        """Ledger rows for a customer, most recent first."""
        return list(
            PointsTransaction.objects.filter(customer_id=customer_id).select_related("order")[:limit]
        )

    # ======================================================================
    # Internals
    # ======================================================================

    @classmethod
    def _require_atomic(cls) -> None:
        if not transaction.get_connection().in_atomic_block:
            raise TransactionManagementError(
                "Ledger writes must run inside the caller's transaction.atomic() block."
            )

    @classmethod
    def _validate_points(cls, points) -> int:
        if isinstance(points, bool) or not isinstance(points, int) or points < 0:
            raise TallymanError("INVALID_POINTS", points=points)
        return points

    @classmethod
    def _get_customer_for_update(cls, customer_id: int) -> Customer:
        """
        Customer row with a row-level lock.

        MUST be called inside transaction.atomic().
        """
        try:
            return Customer.objects.select_for_update().get(pk=customer_id)
        except Customer.DoesNotExist:
            raise CustomerNotFoundError(customer_id=customer_id)

    @classmethod
    def _append(
        cls,
        customer: Customer,
        transaction_type: str,
        amount: int,
        description: str,
        order=None,
        created_by: str = "",
    ) -> PointsTransaction:
        customer.refresh_from_db(fields=["points"])
        return PointsTransaction.objects.create(
            customer=customer,
            order=order,
            transaction_type=transaction_type,
            amount=amount,
            balance_after=customer.points,
            description=description[:200],
            reference=f"order:{order.pk}" if order is not None else "",
            created_by=created_by,
        )
