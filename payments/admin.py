from __future__ import annotations

from django.contrib import admin, messages

from . import services
from .exceptions import ReconciliationError
from .models import GatewayLog, Payment


def _short(s, n=120):
    if s is None:
        return ""
    s = str(s)
    return s[:n] + ("..." if len(s) > n else "")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "internal_reference",
        "user",
        "nominee",
        "category",
        "amount",
        "status",
        "gateway",
        "is_flagged",
        "has_vote",
        "created",
    )
    search_fields = (
        "internal_reference",
        "gateway_reference",
        "user__email",
        "email",
    )
    list_filter = ("status", "gateway", "is_flagged", "category", "created")
    date_hierarchy = "created"
    ordering = ("-created",)
    list_select_related = ("user", "nominee__student", "category")

    readonly_fields = [f.name for f in Payment._meta.fields]

    actions = ("admin_verify", "admin_backfill_votes")

    @admin.display(boolean=True, description="Vote")
    def has_vote(self, obj: Payment) -> bool:
        return hasattr(obj, "vote")

    @admin.action(description="Re-verify with gateway")
    def admin_verify(self, request, queryset):
        updated = 0
        for payment in queryset.filter(status__in=Payment.OPEN_STATUSES):
            before = payment.status
            try:
                after = services.verify_payment(payment.internal_reference).status
            except ReconciliationError as e:
                self.message_user(request, f"Error on {payment.internal_reference}: {e}", level=messages.ERROR)
                continue
            if after != before:
                updated += 1
        self.message_user(request, f"Verify complete. Updated {updated} payment(s).", level=messages.INFO)

    @admin.action(description="Create missing votes for successful payments")
    def admin_backfill_votes(self, request, queryset):
        created = 0
        for payment in queryset.filter(status=Payment.STATUS_SUCCESS, vote__isnull=True):
            try:
                services.promote_to_vote(payment, method="manual")
            except ReconciliationError as e:
                self.message_user(request, f"Error on {payment.internal_reference}: {e}", level=messages.ERROR)
                continue
            created += 1
        self.message_user(request, f"Backfill complete. Created {created} vote(s).", level=messages.INFO)


@admin.register(GatewayLog)
class GatewayLogAdmin(admin.ModelAdmin):
    list_display = ("gateway", "direction", "reference", "endpoint", "status_code", "created", "response_preview")
    list_filter = ("gateway", "direction", "status_code", "created")
    search_fields = ("reference", "endpoint", "status_code")
    date_hierarchy = "created"
    ordering = ("-created",)
    readonly_fields = (
        "user",
        "gateway",
        "reference",
        "endpoint",
        "direction",
        "status_code",
        "request_payload",
        "response_payload",
        "created",
    )

    @admin.display(description="Response")
    def response_preview(self, obj: GatewayLog) -> str:
        return _short(obj.response_payload)
