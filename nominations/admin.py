from django.contrib import admin, messages

from .models import Category, Nominee


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active", "vote_price", "max_votes_per_user", "voting_start", "voting_end", "display_order")
    list_filter = ("is_active", "featured")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}
    ordering = ("display_order", "name")


@admin.register(Nominee)
class NomineeAdmin(admin.ModelAdmin):
    list_display = ("student", "category", "status", "is_disqualified", "total_votes", "total_revenue", "rank")
    list_filter = ("status", "is_disqualified", "category")
    search_fields = ("student__email", "student__first_name", "student__last_name")
    readonly_fields = (
        "total_votes", "total_revenue", "unique_voters", "average_vote_value", "last_vote_at", "rank",
        "reviewed_by", "reviewed_at", "approved_at", "created", "updated",
    )
    actions = ("admin_recompute_statistics",)

    @admin.action(description="Recompute vote statistics")
    def admin_recompute_statistics(self, request, queryset):
        from votes.statistics import recompute_nominee_statistics

        for nominee in queryset:
            recompute_nominee_statistics(nominee.pk)
        messages.success(request, f"Recomputed statistics for {queryset.count()} nominee(s).")
