"""
Read-only vote eligibility checks, run before any money moves.

Checks run in a fixed order and stop at the first failure. Suspicious
signals never block; they only feed the payment's fraud score.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from django.conf import settings
from django.utils import timezone

from nominations.models import Category, Nominee
from payments.models import Payment

from .models import Vote

logger = logging.getLogger(__name__)

SIGNAL_POINTS = 25
MAX_SCORE = 100
RAPID_REQUEST_WINDOW = timedelta(minutes=5)
RAPID_REQUEST_LIMIT = 10
MIN_USER_AGENT_LENGTH = 10


@dataclass
class Eligibility:
    allowed: bool
    reason: str = ""
    code: str = ""
    category: Optional[Category] = None
    nominee: Optional[Nominee] = None
    signals: List[str] = field(default_factory=list)

    @property
    def fraud_score(self) -> int:
        return min(len(self.signals) * SIGNAL_POINTS, MAX_SCORE)

    @property
    def is_suspicious(self) -> bool:
        return self.fraud_score >= int(getattr(settings, "FRAUD_FLAG_SCORE", 50))


def _deny(code: str, reason: str, **kwargs) -> Eligibility:
    return Eligibility(allowed=False, code=code, reason=reason, **kwargs)


def _signals(user_id, ip_address: Optional[str], user_agent: str, now) -> List[str]:
    out = []
    day_ago = now - timedelta(hours=24)

    ips = set(
        Payment.objects.filter(user_id=user_id, created__gte=day_ago)
        .exclude(ip_address__isnull=True)
        .values_list("ip_address", flat=True)
    )
    if ip_address:
        ips.add(ip_address)
    if len(ips) > int(getattr(settings, "SUSPICIOUS_IP_THRESHOLD", 3)):
        out.append("multiple_ips")

    if not user_agent or len(user_agent) < MIN_USER_AGENT_LENGTH:
        out.append("unusual_user_agent")

    if ip_address:
        recent = Payment.objects.filter(ip_address=ip_address, created__gte=now - RAPID_REQUEST_WINDOW).count()
        if recent > RAPID_REQUEST_LIMIT:
            out.append("rapid_requests")
    return out


def check_eligibility(user_id, nominee_id, category_id, amount, *, ip_address: Optional[str] = None,
                      user_agent: str = "", at=None) -> Eligibility:
    now = at or timezone.now()

    # 1. category and voting window
    category = Category.objects.filter(pk=category_id).first()
    if category is None:
        return _deny("category_not_found", "Category not found")
    if not category.is_active:
        return _deny("category_inactive", "Category is not active", category=category)
    if now < category.voting_start:
        return _deny("voting_not_started", "Voting has not started for this category", category=category)
    if now > category.voting_end:
        return _deny("voting_closed", "Voting has ended for this category", category=category)

    # 2. nominee
    nominee = Nominee.objects.filter(pk=nominee_id).first()
    if nominee is None:
        return _deny("nominee_not_found", "Nominee not found", category=category)
    if nominee.category_id != category.pk:
        return _deny("nominee_wrong_category", "Nominee does not belong to this category",
                     category=category, nominee=nominee)
    if nominee.is_disqualified:
        return _deny("nominee_disqualified", "Nominee has been disqualified", category=category, nominee=nominee)
    if nominee.status != Nominee.STATUS_APPROVED or not nominee.is_active:
        return _deny("nominee_not_approved", "Nominee is not approved for voting", category=category,
                     nominee=nominee)

    ctx = {"category": category, "nominee": nominee}

    # 3. exact price
    try:
        amount = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError):
        return _deny("amount_mismatch", "Invalid amount", **ctx)
    if amount != category.vote_price:
        return _deny("amount_mismatch", f"Vote price for this category is ₦{category.vote_price}", **ctx)

    # 4. per-category cap
    if category.max_votes_per_user is not None:
        used = Vote.objects.filter(voter_id=user_id, category=category, status=Vote.STATUS_CONFIRMED).count()
        if used >= category.max_votes_per_user:
            return _deny("vote_limit_reached",
                         f"You have reached the maximum of {category.max_votes_per_user} votes in this category",
                         **ctx)

    # 5. in-flight payment for the same nominee
    window = timedelta(minutes=int(getattr(settings, "DUPLICATE_PAYMENT_WINDOW_MINUTES", 15)))
    if Payment.objects.filter(
        user_id=user_id, nominee=nominee, status=Payment.STATUS_PENDING, created__gte=now - window
    ).exists():
        return _deny("duplicate_pending_payment", "You already have a pending payment for this nominee", **ctx)

    # 6. velocity
    ceiling = int(getattr(settings, "VOTE_DAILY_CEILING", 20))
    day_count = Vote.objects.filter(
        voter_id=user_id, status=Vote.STATUS_CONFIRMED, created__gte=now - timedelta(hours=24)
    ).count()
    if day_count > ceiling:
        return _deny("daily_limit_reached", "Daily voting limit reached", **ctx)

    cooldown = int(getattr(settings, "VOTE_COOLDOWN_SECONDS", 30))
    last = Vote.objects.filter(voter_id=user_id).order_by("-created").values_list("created", flat=True).first()
    if last and (now - last).total_seconds() < cooldown:
        return _deny("cooldown", f"Please wait {cooldown} seconds between votes", **ctx)

    signals = _signals(user_id, ip_address, user_agent, now)
    if signals:
        logger.info("suspicious vote attempt user=%s nominee=%s signals=%s", user_id, nominee.pk, signals)
    return Eligibility(allowed=True, signals=signals, **ctx)
