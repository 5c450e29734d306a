from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models


class Vote(models.Model):
    """
    A counted vote. Created exactly once per successful Payment; afterwards
    only flagged, unflagged or refunded, never deleted.
    """

    STATUS_PENDING = "pending"
    STATUS_CONFIRMED = "confirmed"
    STATUS_FAILED = "failed"
    STATUS_REFUNDED = "refunded"
    STATUS = [
        (STATUS_PENDING, "Pending"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_FAILED, "Failed"),
        (STATUS_REFUNDED, "Refunded"),
    ]

    METHOD_WEBHOOK = "webhook"
    METHOD_POLL = "poll"
    METHOD_MANUAL = "manual"
    METHODS = [
        (METHOD_WEBHOOK, "Webhook"),
        (METHOD_POLL, "Poll"),
        (METHOD_MANUAL, "Manual"),
    ]

    voter = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="votes")
    nominee = models.ForeignKey("nominations.Nominee", on_delete=models.PROTECT, related_name="votes")
    category = models.ForeignKey("nominations.Category", on_delete=models.PROTECT, related_name="votes")

    # Idempotency boundary: one vote per payment
    payment = models.OneToOneField("payments.Payment", on_delete=models.PROTECT, related_name="vote")
    payment_reference = models.CharField(max_length=64, unique=True)
    transaction_reference = models.CharField(max_length=128, blank=True)
    payment_method = models.CharField(max_length=32, blank=True)

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=8, default="NGN")
    processing_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    net_amount = models.DecimalField(max_digits=12, decimal_places=2)

    status = models.CharField(max_length=16, choices=STATUS, default=STATUS_CONFIRMED, db_index=True)
    verification_method = models.CharField(max_length=16, choices=METHODS, default=METHOD_WEBHOOK)
    is_verified = models.BooleanField(default=False)
    verified_at = models.DateTimeField(null=True, blank=True)

    fraud_score = models.PositiveSmallIntegerField(default=0)
    is_flagged = models.BooleanField(default=False)
    flag_reason = models.CharField(max_length=200, blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    review_notes = models.CharField(max_length=500, blank=True)

    refund_reason = models.CharField(max_length=500, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    device_fingerprint = models.CharField(max_length=128, blank=True)

    created = models.DateTimeField(auto_now_add=True)
    updated = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created",)
        indexes = [
            models.Index(fields=["voter", "category", "status"], name="vote_voter_cat_status_idx"),
            models.Index(fields=["voter", "status", "created"], name="vote_voter_status_created_idx"),
            models.Index(fields=["nominee", "status"], name="vote_nominee_status_idx"),
            models.Index(fields=["category", "status", "created"], name="vote_cat_status_created_idx"),
            models.Index(fields=["is_flagged", "fraud_score"], name="vote_flagged_score_idx"),
        ]

    def __str__(self):
        return f"{self.payment_reference} | {self.voter_id} -> {self.nominee_id} | {self.status}"
