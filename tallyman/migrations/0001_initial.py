# Generated migration for the settlement and loyalty ledger models

import uuid
from decimal import Decimal

import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.CharField(
                        help_text="Unique customer code (e.g. CUST-001)",
                        max_length=50,
                        unique=True,
                        verbose_name="code",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                ("email", models.EmailField(blank=True, db_index=True, max_length=254, verbose_name="email")),
                ("phone", models.CharField(blank=True, db_index=True, max_length=30, verbose_name="phone")),
                (
                    "customer_type",
                    models.CharField(
                        choices=[
                            ("regular", "Regular"),
                            ("contractor", "Contractor"),
                            ("designer", "Designer"),
                            ("wholesale", "Wholesale"),
                            ("other", "Other"),
                        ],
                        default="regular",
                        max_length=20,
                        verbose_name="type",
                    ),
                ),
                (
                    "discount_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Percent (0-100). Empty uses the rate configured for the type.",
                        max_digits=5,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(100),
                        ],
                        verbose_name="discount rate",
                    ),
                ),
                (
                    "custom_discount_code",
                    models.CharField(blank=True, max_length=50, verbose_name="custom discount code"),
                ),
                (
                    "custom_discount_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=5,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(100),
                        ],
                        verbose_name="custom discount rate",
                    ),
                ),
                ("points", models.IntegerField(default=0, editable=False, verbose_name="points")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("notes", models.TextField(blank=True, verbose_name="notes")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("created_by", models.CharField(blank=True, max_length=255, verbose_name="created by")),
            ],
            options={
                "verbose_name": "customer",
                "verbose_name_plural": "customers",
                "ordering": ["name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("points__gte", 0)),
                        name="tallyman_customer_points_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("discount_rate__isnull", True),
                            models.Q(("discount_rate__gte", 0), ("discount_rate__lte", 100)),
                            _connector="OR",
                        ),
                        name="tallyman_customer_discount_rate_percent",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="SystemSetting",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("key", models.CharField(max_length=100, unique=True, verbose_name="key")),
                (
                    "value",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        verbose_name="value",
                    ),
                ),
                ("description", models.CharField(blank=True, max_length=255, verbose_name="description")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "system setting",
                "verbose_name_plural": "system settings",
                "ordering": ["key"],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("customer_name", models.CharField(max_length=200, verbose_name="customer name")),
                ("invoice_ref", models.CharField(max_length=50, unique=True, verbose_name="invoice reference")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12, verbose_name="subtotal")),
                (
                    "discount_rate",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0"), max_digits=5, verbose_name="discount rate"
                    ),
                ),
                (
                    "discount_amount",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0"), max_digits=12, verbose_name="discount"
                    ),
                ),
                ("points_redeemed", models.IntegerField(default=0, verbose_name="points redeemed")),
                (
                    "redemption_value",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("0"), max_digits=12, verbose_name="redemption value"
                    ),
                ),
                ("total", models.DecimalField(decimal_places=2, max_digits=12, verbose_name="total")),
                ("discount_code", models.CharField(blank=True, max_length=50, verbose_name="discount code")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                (
                    "status_changed_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="status changed at"),
                ),
                (
                    "sync_status",
                    models.CharField(
                        choices=[
                            ("local", "Local only"),
                            ("pending", "Sync pending"),
                            ("synced", "Synced"),
                            ("failed", "Sync failed"),
                        ],
                        default="local",
                        max_length=20,
                        verbose_name="sync status",
                    ),
                ),
                ("points_awarded", models.IntegerField(blank=True, null=True, verbose_name="points awarded")),
                (
                    "points_awarded_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="points awarded at"),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("created_by", models.CharField(blank=True, max_length=255, verbose_name="created by")),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="orders",
                        to="tallyman.customer",
                        verbose_name="customer",
                    ),
                ),
            ],
            options={
                "verbose_name": "order",
                "verbose_name_plural": "orders",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["customer", "-created_at"], name="tallyman_order_cust_created"),
                    models.Index(fields=["status", "points_awarded_at"], name="tallyman_order_status_award"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total__gte", 0)),
                        name="tallyman_order_total_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("amount__gte", 0)),
                        name="tallyman_order_amount_non_negative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("points_redeemed__gte", 0)),
                        name="tallyman_order_points_redeemed_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200, verbose_name="name")),
                ("quantity", models.PositiveIntegerField(verbose_name="quantity")),
                ("unit_price", models.DecimalField(decimal_places=2, max_digits=12, verbose_name="unit price")),
                ("total", models.DecimalField(decimal_places=2, max_digits=12, verbose_name="line total")),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="tallyman.order",
                        verbose_name="order",
                    ),
                ),
            ],
            options={
                "verbose_name": "order item",
                "verbose_name_plural": "order items",
                "ordering": ["id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gt", 0)),
                        name="tallyman_orderitem_quantity_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("unit_price__gte", 0)),
                        name="tallyman_orderitem_unit_price_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PointsTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[("earn", "Earn"), ("redeem", "Redeem"), ("adjust", "Adjustment")],
                        max_length=20,
                        verbose_name="type",
                    ),
                ),
                (
                    "amount",
                    models.IntegerField(help_text="Positive for earn, negative for redeem", verbose_name="amount"),
                ),
                ("balance_after", models.IntegerField(verbose_name="balance after")),
                ("description", models.CharField(max_length=200, verbose_name="description")),
                (
                    "reference",
                    models.CharField(
                        blank=True,
                        help_text="External reference (e.g. order:123)",
                        max_length=100,
                        verbose_name="reference",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at")),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="created by")),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="points_transactions",
                        to="tallyman.customer",
                        verbose_name="customer",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="points_transactions",
                        to="tallyman.order",
                        verbose_name="order",
                    ),
                ),
            ],
            options={
                "verbose_name": "points transaction",
                "verbose_name_plural": "points transactions",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["customer", "-created_at"], name="tallyman_ptx_cust_created"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount", 0), _negated=True),
                        name="tallyman_pointstransaction_amount_non_zero",
                    ),
                ],
            },
        ),
    ]
