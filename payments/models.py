from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class Payment(models.Model):
    """
    One attempt to pay for one vote.

    Money columns are Decimal naira (2dp); kobo only exists at the gateway
    boundary. ``net_amount``/``total_fees`` and the paid/failed timestamps are
    maintained by the pure helpers in ``payments.ledger``, never by save hooks.
    """

    STATUS_PENDING = "pending"
    STATUS_PROCESSING = "processing"
    STATUS_SUCCESS = "success"
    STATUS_FAILED = "failed"
    STATUS_CANCELLED = "cancelled"
    STATUS_REFUNDED = "refunded"
    STATUS_EXPIRED = "expired"
    STATUS = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_SUCCESS, "Success"),
        (STATUS_FAILED, "Failed"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_REFUNDED, "Refunded"),
        (STATUS_EXPIRED, "Expired"),
    ]
    OPEN_STATUSES = (STATUS_PENDING, STATUS_PROCESSING)

    CURRENCIES = [("NGN", "Naira"), ("USD", "US Dollar")]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="payments")
    nominee = models.ForeignKey("nominations.Nominee", on_delete=models.PROTECT, related_name="payments")
    category = models.ForeignKey("nominations.Category", on_delete=models.PROTECT, related_name="payments")

    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal("0.01"))])
    currency = models.CharField(max_length=8, choices=CURRENCIES, default="NGN")
    status = models.CharField(max_length=16, choices=STATUS, default=STATUS_PENDING, db_index=True)
    gateway = models.CharField(max_length=32)

    internal_reference = models.CharField(max_length=64, unique=True)
    gateway_reference = models.CharField(max_length=128, unique=True, null=True, blank=True)

    # Checkout handle
    authorization_url = models.URLField(max_length=500, blank=True, null=True)
    access_code = models.CharField(max_length=128, blank=True, null=True)

    channel = models.CharField(max_length=32, blank=True)
    gateway_response = models.JSONField(default=dict, blank=True)

    # Fees (naira)
    gateway_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    platform_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total_fees = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    net_amount = models.DecimalField(max_digits=12, decimal_places=2)

    paid_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.CharField(max_length=500, blank=True)
    expires_at = models.DateTimeField()

    # Webhook receipt
    webhook_received = models.BooleanField(default=False)
    webhook_received_at = models.DateTimeField(null=True, blank=True)
    webhook_attempts = models.PositiveIntegerField(default=0)
    webhook_signature = models.CharField(max_length=256, blank=True)
    webhook_payload = models.JSONField(null=True, blank=True)

    # Fraud
    fraud_score = models.PositiveSmallIntegerField(default=0)
    is_flagged = models.BooleanField(default=False)
    flag_reason = models.CharField(max_length=200, blank=True)

    # Gateway verification retries (bounded by PAYMENT_MAX_RETRIES)
    retry_attempts = models.PositiveSmallIntegerField(default=0)
    last_retry_at = models.DateTimeField(null=True, blank=True)

    # Refund
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    refund_reason = models.CharField(max_length=500, blank=True)
    refund_reference = models.CharField(max_length=128, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    refunded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )

    # Admin reconciliation (vote backfill)
    reconciled_at = models.DateTimeField(null=True, blank=True)
    reconciled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )

    # Captured at initiation
    email = models.EmailField(blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    device_fingerprint = models.CharField(max_length=128, blank=True)

    created = models.DateTimeField(auto_now_add=True)
    updated = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created",)
        indexes = [
            models.Index(fields=["user", "status", "created"], name="pay_user_status_created_idx"),
            models.Index(fields=["user", "nominee", "status", "created"], name="pay_user_nominee_status_idx"),
            models.Index(fields=["status", "expires_at"], name="pay_status_expires_idx"),
            models.Index(fields=["category", "status"], name="pay_category_status_idx"),
            models.Index(fields=["ip_address", "created"], name="pay_ip_created_idx"),
            models.Index(fields=["is_flagged", "fraud_score"], name="pay_flagged_score_idx"),
        ]

    def __str__(self):
        return f"{self.internal_reference} | {self.user_id} | ₦{self.amount} | {self.status}"

    def is_expired(self, at=None) -> bool:
        now = at or timezone.now()
        return self.status in self.OPEN_STATUSES and self.expires_at is not None and now > self.expires_at

    @property
    def external_reference(self) -> str:
        return self.gateway_reference or self.internal_reference


class GatewayLog(models.Model):
    """Gateway I/O log with masked payloads, kept for audit and forensics."""

    DIRECTION_OUT = "out"
    DIRECTION_IN = "in"
    DIRECTIONS = [(DIRECTION_OUT, "Outbound"), (DIRECTION_IN, "Inbound")]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    gateway = models.CharField(max_length=32)
    reference = models.CharField(max_length=128, blank=True, db_index=True)
    endpoint = models.CharField(max_length=128, blank=True)
    direction = models.CharField(max_length=4, choices=DIRECTIONS, default=DIRECTION_OUT)
    status_code = models.CharField(max_length=10, blank=True)
    request_payload = models.JSONField(default=dict, blank=True)
    response_payload = models.JSONField(default=dict, blank=True)
    created = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created",)
        indexes = [
            models.Index(fields=["gateway", "created"], name="gwlog_gateway_created_idx"),
        ]

    def __str__(self):
        return f"{self.gateway} | {self.direction} | {self.reference or '-'} | {self.status_code}"
