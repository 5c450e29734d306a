from django.contrib import admin, messages

from payments.services import clear_vote_flag, flag_vote

from .models import Vote


@admin.register(Vote)
class VoteAdmin(admin.ModelAdmin):
    list_display = (
        "payment_reference",
        "voter",
        "nominee",
        "category",
        "amount",
        "status",
        "verification_method",
        "is_flagged",
        "fraud_score",
        "created",
    )
    search_fields = ("payment_reference", "transaction_reference", "voter__email")
    list_filter = ("status", "verification_method", "is_flagged", "category", "created")
    date_hierarchy = "created"
    ordering = ("-created",)
    list_select_related = ("voter", "nominee__student", "category")
    readonly_fields = [f.name for f in Vote._meta.fields]

    actions = ("admin_flag", "admin_clear_flag")

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.action(description="Flag for review")
    def admin_flag(self, request, queryset):
        for vote in queryset:
            flag_vote(vote.pk, "Flagged from admin", request.user)
        self.message_user(request, f"Flagged {queryset.count()} vote(s).", level=messages.INFO)

    @admin.action(description="Clear flag")
    def admin_clear_flag(self, request, queryset):
        for vote in queryset:
            clear_vote_flag(vote.pk, request.user)
        self.message_user(request, f"Cleared {queryset.count()} vote(s).", level=messages.INFO)
