from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.text import slugify

MIN_VOTE_PRICE = Decimal("50")
MAX_VOTE_PRICE = Decimal("1000")


class Category(models.Model):
    """
    An award category. Owns the voting window and the price of one vote;
    the payment flow only ever reads it.
    """

    name = models.CharField(max_length=100, unique=True)
    slug = models.SlugField(max_length=120, unique=True, blank=True)
    description = models.TextField(max_length=500)
    icon = models.CharField(max_length=32, default="trophy")

    is_active = models.BooleanField(default=True)
    voting_start = models.DateTimeField()
    voting_end = models.DateTimeField()
    vote_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("100.00"),
        validators=[MinValueValidator(MIN_VOTE_PRICE), MaxValueValidator(MAX_VOTE_PRICE)],
    )
    # null means unlimited
    max_votes_per_user = models.PositiveIntegerField(null=True, blank=True)

    display_order = models.PositiveIntegerField(default=0)
    featured = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )

    created = models.DateTimeField(auto_now_add=True)
    updated = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("display_order", "name")
        verbose_name_plural = "categories"
        indexes = [
            models.Index(fields=["is_active", "voting_start", "voting_end"], name="category_active_window_idx"),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        if self.voting_start and self.voting_end and self.voting_end <= self.voting_start:
            raise ValidationError({"voting_end": "Voting end date must be after start date."})

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:120]
        super().save(*args, **kwargs)

    def is_voting_open(self, at=None) -> bool:
        now = at or timezone.now()
        return self.is_active and self.voting_start <= now <= self.voting_end


class Nominee(models.Model):
    STATUS_PENDING = "pending"
    STATUS_UNDER_REVIEW = "under_review"
    STATUS_APPROVED = "approved"
    STATUS_REJECTED = "rejected"
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_UNDER_REVIEW, "Under review"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REJECTED, "Rejected"),
    ]

    student = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="nominations")
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name="nominees")
    nominated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="nominations_made"
    )
    nomination_reason = models.TextField(max_length=1000)
    campaign_statement = models.TextField(max_length=2000, blank=True)

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    is_active = models.BooleanField(default=True)
    review_notes = models.CharField(max_length=500, blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)

    is_disqualified = models.BooleanField(default=False)
    disqualification_reason = models.CharField(max_length=500, blank=True)
    disqualified_at = models.DateTimeField(null=True, blank=True)

    # Denormalized vote statistics; written only by votes.statistics
    total_votes = models.PositiveIntegerField(default=0)
    total_revenue = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    unique_voters = models.PositiveIntegerField(default=0)
    average_vote_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    last_vote_at = models.DateTimeField(null=True, blank=True)
    rank = models.PositiveIntegerField(default=0)

    created = models.DateTimeField(auto_now_add=True)
    updated = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("category", "rank", "-created")
        constraints = [
            models.UniqueConstraint(fields=["student", "category"], name="unique_nomination_per_category"),
        ]
        indexes = [
            models.Index(fields=["category", "status"], name="nominee_category_status_idx"),
            models.Index(fields=["status", "is_active"], name="nominee_status_active_idx"),
            models.Index(fields=["category", "-total_votes"], name="nominee_category_votes_idx"),
        ]

    def __str__(self):
        return f"{self.student} | {self.category} | {self.status}"

    @property
    def is_votable(self) -> bool:
        return self.status == self.STATUS_APPROVED and self.is_active and not self.is_disqualified
