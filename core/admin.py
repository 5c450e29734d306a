from django.contrib import admin

from .models import LoginActivity


@admin.register(LoginActivity)
class LoginActivityAdmin(admin.ModelAdmin):
    list_display = ("user", "ip", "device_fingerprint", "created")
    search_fields = ("user__email", "ip", "device_fingerprint")
    list_filter = ("created",)
    date_hierarchy = "created"
    readonly_fields = ("user", "ip", "user_agent", "device_fingerprint", "created")
