"""
Pure bookkeeping helpers for Payment rows.

The reconciliation engine calls these explicitly before every save: fee and
net-amount recomputation, status stamping and the transition table all live
here so they can be tested without a database.
"""
from __future__ import annotations

import secrets
import string
import time
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from django.conf import settings
from django.utils import timezone

from .exceptions import InvalidTransition

TWO_PLACES = Decimal("0.01")
_B36 = string.digits + string.ascii_lowercase

PENDING = "pending"
PROCESSING = "processing"
SUCCESS = "success"
FAILED = "failed"
CANCELLED = "cancelled"
REFUNDED = "refunded"
EXPIRED = "expired"

# Monotonic state machine. Refund only from success.
ALLOWED_TRANSITIONS = {
    PENDING: {PROCESSING, SUCCESS, FAILED, CANCELLED, EXPIRED},
    PROCESSING: {SUCCESS, FAILED, CANCELLED, EXPIRED},
    SUCCESS: {REFUNDED},
    FAILED: set(),
    CANCELLED: set(),
    REFUNDED: set(),
    EXPIRED: set(),
}


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------

def q(amount: Decimal | int | float | str) -> Decimal:
    d = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return d.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_minor(amount: Decimal | int | str) -> int:
    """Naira -> kobo."""
    return int(q(amount) * 100)


def from_minor(value: int | str | None) -> Decimal:
    """Kobo -> naira. Missing values count as zero."""
    if value in (None, ""):
        return Decimal("0.00")
    return q(Decimal(int(value)) / 100)


def platform_fee_for(amount: Decimal) -> Decimal:
    pct = Decimal(str(getattr(settings, "PLATFORM_FEE_PERCENT", "0") or "0"))
    return q(q(amount) * pct / 100)


def apply_fees(payment, *, gateway_fee: Optional[Decimal] = None, platform_fee: Optional[Decimal] = None) -> list[str]:
    """
    Set fee components (when given) and recompute ``total_fees`` and
    ``net_amount``. Returns the changed field names for ``save(update_fields=...)``.
    """
    if gateway_fee is not None:
        payment.gateway_fee = q(gateway_fee)
    if platform_fee is not None:
        payment.platform_fee = q(platform_fee)
    payment.total_fees = q((payment.gateway_fee or 0) + (payment.platform_fee or 0))
    payment.net_amount = q(payment.amount - payment.total_fees)
    return ["gateway_fee", "platform_fee", "total_fees", "net_amount"]


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, set())


def transition(payment, target: str, *, at: Optional[datetime] = None, reason: str = "") -> list[str]:
    """
    Move ``payment`` to ``target`` and stamp the matching timestamp.
    Raises InvalidTransition for anything the state machine forbids.
    """
    if not can_transition(payment.status, target):
        raise InvalidTransition(f"Cannot move payment from {payment.status} to {target}")

    now = at or timezone.now()
    payment.status = target
    fields = ["status"]
    if target == SUCCESS and not payment.paid_at:
        payment.paid_at = now
        fields.append("paid_at")
    elif target in (FAILED, EXPIRED, CANCELLED):
        if not payment.failed_at:
            payment.failed_at = now
            fields.append("failed_at")
        if reason:
            payment.failure_reason = reason[:500]
            fields.append("failure_reason")
    elif target == REFUNDED and not payment.refunded_at:
        payment.refunded_at = now
        fields.append("refunded_at")
    return fields


def expiry_for(created_at: Optional[datetime] = None) -> datetime:
    minutes = int(getattr(settings, "PAYMENT_TTL_MINUTES", 30))
    return (created_at or timezone.now()) + timedelta(minutes=minutes)


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------

def _base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _B36[r] + out
        if not n:
            return out


def generate_reference(prefix: Optional[str] = None) -> str:
    prefix = prefix or getattr(settings, "PAYMENT_REFERENCE_PREFIX", "EKSU")
    stamp = _base36(int(time.time() * 1000))
    rand = "".join(secrets.choice(_B36) for _ in range(6))
    return f"{prefix}_{stamp}_{rand}".upper()
