# core/models.py
from django.db import models
from django.conf import settings


class LoginActivity(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="login_activity")
    ip = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    device_fingerprint = models.CharField(max_length=128, blank=True)
    created = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created",)
        indexes = [
            models.Index(fields=["user", "created"], name="loginact_user_created_idx"),
        ]

    def __str__(self):
        return f"{self.user_id} | {self.ip or '-'} | {self.created:%Y-%m-%d %H:%M}"
