from __future__ import annotations

from django.apps import AppConfig
from django.conf import settings
from django.core.checks import Error, Warning, register


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Campus Vote Payments"

    def ready(self):
        register(payments_system_checks)


# ---------------------------------------------------------------------------
# System checks: surface gateway config issues early with `manage.py check`
# ---------------------------------------------------------------------------
REQUIRED_KEYS = {
    "paystack": ("PAYSTACK_SECRET_KEY",),
    "flutterwave": ("FLUTTERWAVE_SECRET_KEY", "FLUTTERWAVE_WEBHOOK_SECRET"),
    "mock": ("MOCK_GATEWAY_SECRET",),
}


def payments_system_checks(app_configs, **kwargs):
    messages = []
    gateway = str(getattr(settings, "PAYMENT_GATEWAY", "paystack")).lower()

    # 1) Known gateway
    if gateway not in REQUIRED_KEYS:
        messages.append(
            Error(
                f"PAYMENT_GATEWAY={gateway!r} is not a known gateway.",
                id="payments.E001",
                hint=f"Use one of: {', '.join(sorted(REQUIRED_KEYS))}",
            )
        )
        return messages

    # 2) Credentials for the selected gateway
    missing = [k for k in REQUIRED_KEYS[gateway] if not getattr(settings, k, "")]
    if missing:
        messages.append(
            Warning(
                f"{gateway} is the active payment gateway but some credentials are missing.",
                id="payments.W001",
                hint=f"Missing settings: {', '.join(missing)}",
            )
        )

    # 3) Mock gateway outside DEBUG
    if gateway == "mock" and not settings.DEBUG:
        messages.append(
            Warning(
                "The mock payment gateway is active with DEBUG off.",
                id="payments.W002",
                hint="Set PAYMENT_GATEWAY to paystack or flutterwave in production.",
            )
        )

    # 4) Expiry window sanity
    if int(getattr(settings, "PAYMENT_TTL_MINUTES", 30)) <= 0:
        messages.append(
            Error(
                "PAYMENT_TTL_MINUTES must be positive.",
                id="payments.E002",
            )
        )

    return messages
