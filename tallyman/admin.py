"""Tallyman admin.

Orders and ledger rows are read-only here: they are written by OrderService
and LoyaltyLedger only. Points corrections go through LoyaltyLedger.adjust().
"""

from django.contrib import admin
from django.utils.html import format_html

from tallyman.models import Customer, Order, OrderItem, PointsTransaction, SystemSetting


# ===========================================
# Inline Classes
# ===========================================


class PointsTransactionInline(admin.TabularInline):
    model = PointsTransaction
    fk_name = "customer"
    extra = 0
    fields = ["created_at", "transaction_type", "amount", "balance_after", "description", "reference"]
    readonly_fields = fields
    ordering = ["-created_at"]
    verbose_name_plural = "Points history"

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    fields = ["name", "quantity", "unit_price", "total"]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# Customer Admin
# ===========================================


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ["code", "name", "customer_type", "discount_rate", "points", "is_active"]
    list_filter = ["customer_type", "is_active"]
    search_fields = ["code", "name", "email", "phone"]
    readonly_fields = ["uuid", "points", "created_at", "updated_at"]
    inlines = [PointsTransactionInline]


# ===========================================
# Order Admin
# ===========================================


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        "invoice_ref",
        "customer_name",
        "total",
        "status_badge",
        "points_redeemed",
        "points_awarded",
        "sync_status",
        "created_at",
    ]
    list_filter = ["status", "sync_status"]
    search_fields = ["invoice_ref", "customer_name", "customer__code"]
    date_hierarchy = "created_at"
    raw_id_fields = ["customer"]
    inlines = [OrderItemInline]
    readonly_fields = [
        "customer",
        "customer_name",
        "invoice_ref",
        "amount",
        "discount_rate",
        "discount_amount",
        "points_redeemed",
        "redemption_value",
        "total",
        "discount_code",
        "status",
        "status_changed_at",
        "points_awarded",
        "points_awarded_at",
        "created_at",
        "updated_at",
        "created_by",
    ]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def status_badge(self, obj):
        colors = {
            "pending": "#f0ad4e",
            "completed": "#28a745",
            "cancelled": "#6c757d",
        }
        label = obj.get_status_display()
        if obj.awaiting_award:
            label = f"{label} (points pending)"
        return format_html(
            '<span style="background:{}; color:#fff; padding:2px 8px; '
            'border-radius:3px; font-size:11px;">{}</span>',
            colors.get(obj.status, "#6c757d"),
            label,
        )

    status_badge.short_description = "Status"


# ===========================================
# Ledger Admin
# ===========================================


@admin.register(PointsTransaction)
class PointsTransactionAdmin(admin.ModelAdmin):
    list_display = [
        "created_at",
        "customer",
        "transaction_type",
        "points_display",
        "balance_after",
        "description",
    ]
    list_filter = ["transaction_type"]
    search_fields = ["customer__code", "customer__name", "description", "reference"]
    date_hierarchy = "created_at"
    readonly_fields = [
        "customer",
        "order",
        "transaction_type",
        "amount",
        "balance_after",
        "description",
        "reference",
        "created_at",
        "created_by",
    ]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def points_display(self, obj):
        if obj.amount > 0:
            return format_html('<span style="color:green">+{}</span>', obj.amount)
        return format_html('<span style="color:red">{}</span>', obj.amount)

    points_display.short_description = "Points"


@admin.register(SystemSetting)
class SystemSettingAdmin(admin.ModelAdmin):
    list_display = ["key", "description", "updated_at"]
    search_fields = ["key"]
