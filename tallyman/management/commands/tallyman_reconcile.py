"""Management command to check ledger consistency and retry points awards."""

from django.core.management.base import BaseCommand, CommandError

from tallyman.exceptions import TallymanError
from tallyman.models import Customer
from tallyman.services.ledger import LoyaltyLedger
from tallyman.services.orders import OrderService


class Command(BaseCommand):
    help = (
        "Report customers whose points balance differs from their ledger and "
        "optionally retry completed orders whose points were never awarded."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--customer",
            default=None,
            help="Only verify the customer with this code",
        )
        parser.add_argument(
            "--retry-awards",
            action="store_true",
            help="Retry points awards for completed-but-unawarded orders",
        )

    def handle(self, *args, **options):
        if options["retry_awards"]:
            self._retry_awards()

        if options["customer"]:
            self._verify_one(options["customer"])
            return

        mismatches = LoyaltyLedger.find_inconsistencies()
        for customer in mismatches:
            self.stderr.write(
                f"{customer.code}: balance={customer.points} ledger={customer.ledger_sum}"
            )
        if mismatches:
            raise CommandError(f"{len(mismatches)} customer(s) with ledger mismatches.")
        self.stdout.write(self.style.SUCCESS("Ledger consistent for all customers."))

    def _verify_one(self, code):
        customer = Customer.objects.filter(code=code).first()
        if customer is None:
            raise CommandError(f"Customer {code!r} not found.")
        try:
            balance = LoyaltyLedger.verify(customer.pk)
        except TallymanError as exc:
            raise CommandError(f"{code}: {exc.message} {exc.data}")
        self.stdout.write(self.style.SUCCESS(f"{code}: balance {balance} matches ledger."))

    def _retry_awards(self):
        report = OrderService.retry_awards()
        for order in report.awarded:
            self.stdout.write(f"Awarded {order.points_awarded} points for {order.invoice_ref}")
        for order, exc in report.failed:
            self.stderr.write(f"Award failed for {order.invoice_ref}: {exc.code}")
        self.stdout.write(
            self.style.SUCCESS(
                f"Retried awards: {len(report.awarded)} awarded, {len(report.failed)} failed."
            )
        )
