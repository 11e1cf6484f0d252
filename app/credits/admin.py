"""
Django admin configuration for the credit ledger.

Balances change only through the services, so account credits are read-only
here and audit entries cannot be added, edited or deleted. Corrections are
made with CreditService.adjust_credits(), which writes a manual_adjustment
entry.
"""

from django.contrib import admin

from credits.models import (
    Booking,
    CreditAccount,
    CreditAuditLogEntry,
    TouristPass,
    WebhookEvent,
)


@admin.register(CreditAccount)
class CreditAccountAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "user",
        "credits",
        "tier",
        "frozen",
        "billing_sync_pending",
        "created_at",
    ]
    list_filter = ["tier", "frozen", "billing_sync_pending"]
    search_fields = ["id", "user__email", "stripe_customer_id", "stripe_subscription_id"]
    readonly_fields = [
        "id",
        "user",
        "credits",
        "frozen",
        "frozen_at",
        "billing_sync_pending",
        "billing_sync_error",
        "billing_sync_attempts",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "user", "credits", "tier")}),
        ("Freeze", {"fields": ("frozen", "frozen_at")}),
        (
            "Billing",
            {
                "fields": (
                    "stripe_customer_id",
                    "stripe_subscription_id",
                    "billing_sync_pending",
                    "billing_sync_error",
                    "billing_sync_attempts",
                ),
            },
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(CreditAuditLogEntry)
class CreditAuditLogEntryAdmin(admin.ModelAdmin):
    """Audit entries are immutable - view only."""

    list_display = [
        "id",
        "account",
        "sequence",
        "action",
        "credits_changed",
        "credits_after",
        "created_by",
        "created_at",
    ]
    list_filter = ["action", "created_at"]
    search_fields = ["id", "account__id", "account__user__email", "idempotency_key"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "account",
        "class_session",
        "status",
        "funding_source",
        "credits_used",
        "created_at",
    ]
    list_filter = ["status", "funding_source"]
    search_fields = ["id", "account__user__email", "class_session__name"]
    readonly_fields = [
        "id",
        "account",
        "class_session",
        "status",
        "funding_source",
        "credits_used",
        "tourist_pass",
        "cancelled_at",
        "completed_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(TouristPass)
class TouristPassAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "account",
        "pass_type",
        "classes_used",
        "classes_total",
        "ends_at",
        "active",
    ]
    list_filter = ["pass_type", "active"]
    search_fields = ["id", "account__user__email", "payment_reference"]
    readonly_fields = ["id", "classes_used", "payment_reference", "created_at", "updated_at"]
    ordering = ["-created_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["stripe_event_id"]
    readonly_fields = [
        "id",
        "stripe_event_id",
        "event_type",
        "payload",
        "status",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False
