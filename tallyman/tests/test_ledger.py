"""
Tests for the loyalty ledger:
- Redemption and earn inside the caller's transaction
- Refusal outside a transaction
- Guarded decrement (never negative)
- Manual adjustments
- Balance / ledger consistency checks
"""

import pytest
from django.db import IntegrityError, transaction
from django.db.transaction import TransactionManagementError

from tallyman.exceptions import (
    CustomerNotFoundError,
    InsufficientPointsError,
    LedgerInconsistencyError,
    TallymanError,
)
from tallyman.models import Customer, PointsTransaction, TransactionType
from tallyman.services.ledger import LoyaltyLedger


pytestmark = pytest.mark.django_db


# ═══════════════════════════════════════════════════════════════════
# Redemption
# ═══════════════════════════════════════════════════════════════════


class TestRecordRedemption:
    def test_redeem_deducts_and_records(self, customer):
        with transaction.atomic():
            tx = LoyaltyLedger.record_redemption(customer.pk, 50, description="Counter sale")

        customer.refresh_from_db()
        assert customer.points == 100
        assert tx.transaction_type == TransactionType.REDEEM
        assert tx.amount == -50
        assert tx.balance_after == 100
        assert tx.description == "Counter sale"

    def test_redeem_whole_balance(self, customer):
        with transaction.atomic():
            LoyaltyLedger.record_redemption(customer.pk, 150)

        assert LoyaltyLedger.get_balance(customer.pk) == 0

    def test_insufficient_points(self, customer):
        with pytest.raises(InsufficientPointsError) as exc_info:
            with transaction.atomic():
                LoyaltyLedger.record_redemption(customer.pk, 151)

        assert exc_info.value.data["available"] == 150
        assert exc_info.value.data["requested"] == 151
        customer.refresh_from_db()
        assert customer.points == 150
        assert not PointsTransaction.objects.filter(
            customer=customer, transaction_type=TransactionType.REDEEM
        ).exists()

    def test_zero_is_noop(self, customer):
        before = PointsTransaction.objects.count()
        with transaction.atomic():
            assert LoyaltyLedger.record_redemption(customer.pk, 0) is None

        assert PointsTransaction.objects.count() == before

    @pytest.mark.parametrize("points", [-1, 1.5, "10", True])
    def test_invalid_points(self, customer, points):
        with pytest.raises(TallymanError, match="INVALID_POINTS"):
            with transaction.atomic():
                LoyaltyLedger.record_redemption(customer.pk, points)

    def test_unknown_customer(self, db):
        with pytest.raises(CustomerNotFoundError):
            with transaction.atomic():
                LoyaltyLedger.record_redemption(999999, 10)


# ═══════════════════════════════════════════════════════════════════
# Earn
# ═══════════════════════════════════════════════════════════════════


class TestRecordEarn:
    def test_earn_credits_and_records(self, customer):
        with transaction.atomic():
            tx = LoyaltyLedger.record_earn(customer.pk, 107)

        assert LoyaltyLedger.get_balance(customer.pk) == 257
        assert tx.transaction_type == TransactionType.EARN
        assert tx.amount == 107
        assert tx.balance_after == 257
        assert tx.description == "Points earned"

    def test_zero_is_noop(self, customer):
        with transaction.atomic():
            assert LoyaltyLedger.record_earn(customer.pk, 0) is None

        assert LoyaltyLedger.get_balance(customer.pk) == 150


@pytest.mark.django_db(transaction=True)
class TestRequiresTransaction:
    """Ledger writes join the caller's transaction and refuse to run without one."""

    def test_redemption_outside_atomic(self, customer):
        with pytest.raises(TransactionManagementError):
            LoyaltyLedger.record_redemption(customer.pk, 10)

        assert LoyaltyLedger.get_balance(customer.pk) == 150

    def test_earn_outside_atomic(self, customer):
        with pytest.raises(TransactionManagementError):
            LoyaltyLedger.record_earn(customer.pk, 10)

    def test_rolls_back_with_caller(self, customer):
        with pytest.raises(RuntimeError):
            with transaction.atomic():
                LoyaltyLedger.record_redemption(customer.pk, 50)
                raise RuntimeError("order write failed")

        assert LoyaltyLedger.get_balance(customer.pk) == 150
        assert LoyaltyLedger.balance_from_ledger(customer.pk) == 150


# ═══════════════════════════════════════════════════════════════════
# Adjustments
# ═══════════════════════════════════════════════════════════════════


class TestAdjust:
    def test_positive_adjustment(self, customer):
        tx = LoyaltyLedger.adjust(customer.pk, 25, "Goodwill", created_by="admin")

        assert tx.transaction_type == TransactionType.ADJUST
        assert tx.amount == 25
        assert tx.balance_after == 175
        assert tx.created_by == "admin"

    def test_negative_adjustment(self, customer):
        LoyaltyLedger.adjust(customer.pk, -150, "Expired")

        assert LoyaltyLedger.get_balance(customer.pk) == 0

    def test_negative_adjustment_cannot_overdraw(self, customer):
        with pytest.raises(InsufficientPointsError):
            LoyaltyLedger.adjust(customer.pk, -151, "Too much")

        assert LoyaltyLedger.get_balance(customer.pk) == 150

    @pytest.mark.parametrize("delta", [0, 2.5, None])
    def test_invalid_delta(self, customer, delta):
        with pytest.raises(TallymanError, match="INVALID_POINTS"):
            LoyaltyLedger.adjust(customer.pk, delta, "Nope")


# ═══════════════════════════════════════════════════════════════════
# Consistency
# ═══════════════════════════════════════════════════════════════════


class TestConsistency:
    def test_balance_matches_ledger(self, customer):
        with transaction.atomic():
            LoyaltyLedger.record_redemption(customer.pk, 30)
            LoyaltyLedger.record_earn(customer.pk, 12)

        assert LoyaltyLedger.verify(customer.pk) == 132
        assert LoyaltyLedger.balance_from_ledger(customer.pk) == 132

    def test_verify_detects_mismatch(self, customer):
        Customer.objects.filter(pk=customer.pk).update(points=999)

        with pytest.raises(LedgerInconsistencyError) as exc_info:
            LoyaltyLedger.verify(customer.pk)

        assert exc_info.value.data == {
            "customer_id": customer.pk,
            "balance": 999,
            "ledger_sum": 150,
        }
        # never repaired
        assert LoyaltyLedger.get_balance(customer.pk) == 999

    def test_find_inconsistencies(self, customer, customer_100):
        assert LoyaltyLedger.find_inconsistencies() == []

        Customer.objects.filter(pk=customer_100.pk).update(points=7)

        mismatches = LoyaltyLedger.find_inconsistencies()
        assert [c.pk for c in mismatches] == [customer_100.pk]
        assert mismatches[0].ledger_sum == 100

    def test_customer_without_history_is_consistent(self, designer):
        assert LoyaltyLedger.verify(designer.pk) == 0
        assert designer not in LoyaltyLedger.find_inconsistencies()

    def test_history_newest_first(self, customer):
        LoyaltyLedger.adjust(customer.pk, 5, "Second")

        history = LoyaltyLedger.history(customer.pk)
        assert [tx.description for tx in history] == ["Second", "Opening balance"]

    def test_balance_cannot_go_negative_in_db(self, customer):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                Customer.objects.filter(pk=customer.pk).update(points=-1)

    def test_zero_amount_row_rejected(self, customer):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                PointsTransaction.objects.create(
                    customer=customer,
                    transaction_type=TransactionType.ADJUST,
                    amount=0,
                    balance_after=150,
                    description="nothing",
                )
