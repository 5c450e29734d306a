"""
Payment -> vote reconciliation.

Every state change goes through ``payments.ledger``; the only place a Vote
is created is ``promote_to_vote``. No database lock is held while a gateway
call is in flight: success transitions re-read the row under
``select_for_update`` after the gateway has answered.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from votes.eligibility import check_eligibility
from votes.models import Vote
from votes.statistics import recompute_nominee_statistics, repair_statistics

from . import ledger
from .exceptions import (
    DuplicateReference,
    GatewayError,
    GatewayUnavailable,
    InvalidSignature,
    InvalidTransition,
    PaymentNotFound,
    ValidationError,
)
from .gateways import EVENT_CHARGE_FAILED, EVENT_CHARGE_SUCCESS, STATUS_FAILED, STATUS_SUCCESS, get_gateway
from .models import GatewayLog, Payment

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("payments.security")

REFERENCE_ATTEMPTS = 3


# ============================================================================
# Gateway plumbing
# ============================================================================

def _write_gateway_log(record: Dict, direction: str = GatewayLog.DIRECTION_OUT, user=None) -> None:
    # best-effort; an audit write must never break a payment
    try:
        GatewayLog.objects.create(
            user=user,
            gateway=record.get("gateway", ""),
            reference=(record.get("reference") or "")[:128],
            endpoint=(record.get("endpoint") or "")[:128],
            direction=direction,
            status_code=str(record.get("status_code", "")),
            request_payload=record.get("request") or {},
            response_payload=record.get("response") or {},
        )
    except Exception:
        logger.exception("could not write gateway log for %s", record.get("reference"))


def gateway_for(name: Optional[str] = None, gateway=None):
    """The given adapter, or a configured one whose I/O lands in GatewayLog."""
    if gateway is not None:
        return gateway
    return get_gateway(name, log_fn=_write_gateway_log)


def find_payment(reference: str) -> Payment:
    payment = (
        Payment.objects.select_related("nominee", "category", "user")
        .filter(Q(internal_reference=reference) | Q(gateway_reference=reference))
        .first()
    )
    if payment is None:
        raise PaymentNotFound(f"No payment with reference {reference}")
    return payment


def _mismatch(payment: Payment, amount_minor: Optional[int], currency: str) -> str:
    if amount_minor is not None and amount_minor != ledger.to_minor(payment.amount):
        return (f"Amount mismatch: expected {ledger.to_minor(payment.amount)}, "
                f"gateway reported {amount_minor}")
    if currency and currency.upper() != payment.currency:
        return f"Currency mismatch: expected {payment.currency}, gateway reported {currency}"
    return ""


# ============================================================================
# Initiation
# ============================================================================

def _unique_reference() -> str:
    for _ in range(REFERENCE_ATTEMPTS):
        reference = ledger.generate_reference()
        if not Payment.objects.filter(
            Q(internal_reference=reference) | Q(gateway_reference=reference)
        ).exists():
            return reference
    raise DuplicateReference("Could not generate a unique payment reference")


def initiate_payment(user, nominee_id, category_id, amount, *, email: Optional[str] = None,
                     ip_address: Optional[str] = None, user_agent: str = "", device_fingerprint: str = "",
                     callback_url: Optional[str] = None, gateway=None) -> Payment:
    """
    Guard, then hand the charge to the gateway, then persist a pending
    Payment. Nothing is written when the guard denies or the gateway fails.
    """
    if not getattr(user, "can_vote", False):
        raise ValidationError("Your account is not allowed to vote", code="voter_inactive")

    verdict = check_eligibility(user.pk, nominee_id, category_id, amount,
                                ip_address=ip_address, user_agent=user_agent)
    if not verdict.allowed:
        logger.info("vote denied user=%s nominee=%s: %s", user.pk, nominee_id, verdict.code)
        raise ValidationError(verdict.reason, code=verdict.code)

    gw = gateway_for(gateway=gateway)
    amount = ledger.q(amount)
    currency = getattr(settings, "PAYMENT_CURRENCY", "NGN")
    email = email or user.email
    reference = _unique_reference()
    if not callback_url:
        callback_url = f"{getattr(settings, 'FRONTEND_URL', '').rstrip('/')}/payment/callback"

    result = gw.initialize(
        reference,
        ledger.to_minor(amount),
        currency,
        email,
        callback_url=callback_url,
        metadata={
            "payment_reference": reference,
            "user_id": user.pk,
            "nominee_id": verdict.nominee.pk,
            "category_id": verdict.category.pk,
            "vote_type": "paid_vote",
        },
    )

    now = timezone.now()
    payment = Payment(
        user=user,
        nominee=verdict.nominee,
        category=verdict.category,
        amount=amount,
        currency=currency,
        gateway=gw.name,
        internal_reference=reference,
        gateway_reference=result.external_reference or None,
        authorization_url=result.checkout_url,
        access_code=result.access_code or None,
        gateway_response=result.raw,
        expires_at=ledger.expiry_for(now),
        email=email,
        ip_address=ip_address,
        user_agent=user_agent,
        device_fingerprint=device_fingerprint,
        fraud_score=verdict.fraud_score,
        is_flagged=verdict.is_suspicious,
        flag_reason=",".join(verdict.signals)[:200],
    )
    ledger.apply_fees(payment, gateway_fee=Decimal("0"), platform_fee=ledger.platform_fee_for(amount))
    try:
        with transaction.atomic():
            payment.save()
    except IntegrityError as e:
        raise DuplicateReference(f"Payment reference {reference} already exists") from e

    logger.info("payment %s initiated user=%s nominee=%s amount=%s via %s",
                reference, user.pk, verdict.nominee.pk, amount, gw.name)
    if payment.is_flagged:
        logger.warning("payment %s flagged (score %s): %s", reference, payment.fraud_score, payment.flag_reason)
    return payment


# ============================================================================
# Transitions
# ============================================================================

def _mark_success(payment_id, *, fee_minor: int = 0, channel: str = "", paid_at=None,
                  raw: Optional[Dict] = None) -> tuple[Payment, bool]:
    """Returns (payment, moved). ``moved`` is True only for the caller that made the transition."""
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=payment_id)
        if payment.status not in Payment.OPEN_STATUSES:
            return payment, False
        if payment.is_expired():
            fields = ledger.transition(payment, ledger.EXPIRED, reason="Payment window elapsed before confirmation")
            payment.save(update_fields=fields + ["updated"])
            logger.warning("late confirmation for expired payment %s ignored", payment.internal_reference)
            return payment, False

        fields = ledger.transition(payment, ledger.SUCCESS, at=paid_at)
        fields += ledger.apply_fees(payment, gateway_fee=ledger.from_minor(fee_minor))
        if channel:
            payment.channel = channel[:32]
            fields.append("channel")
        if raw:
            payment.gateway_response = raw
            fields.append("gateway_response")
        payment.save(update_fields=fields + ["updated"])

    logger.info("payment %s succeeded", payment.internal_reference)
    return payment, True


def _mark_failed(payment_id, reason: str, *, raw: Optional[Dict] = None) -> tuple[Payment, bool]:
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=payment_id)
        if payment.status not in Payment.OPEN_STATUSES:
            return payment, False
        fields = ledger.transition(payment, ledger.FAILED, reason=reason or "Payment failed")
        if raw:
            payment.gateway_response = raw
            fields.append("gateway_response")
        payment.save(update_fields=fields + ["updated"])

    logger.info("payment %s failed: %s", payment.internal_reference, payment.failure_reason)
    return payment, True


def expire_payment(payment_id) -> Payment:
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=payment_id)
        if payment.is_expired():
            fields = ledger.transition(payment, ledger.EXPIRED, reason="Payment window elapsed")
            payment.save(update_fields=fields + ["updated"])
            logger.info("payment %s expired", payment.internal_reference)
    return payment


def expire_stale_payments(at=None) -> int:
    now = at or timezone.now()
    count = Payment.objects.filter(status__in=Payment.OPEN_STATUSES, expires_at__lt=now).update(
        status=Payment.STATUS_EXPIRED,
        failed_at=now,
        failure_reason="Payment window elapsed",
        updated=now,
    )
    if count:
        logger.info("expired %s stale payment(s)", count)
    return count


def _bump_retry(payment: Payment) -> None:
    limit = int(getattr(settings, "PAYMENT_MAX_RETRIES", 3))
    Payment.objects.filter(pk=payment.pk, retry_attempts__lt=limit).update(
        retry_attempts=F("retry_attempts") + 1, last_retry_at=timezone.now()
    )


# ============================================================================
# Verify (poll / return-URL flow)
# ============================================================================

def verify_payment(reference: str, *, gateway=None) -> Payment:
    payment = find_payment(reference)

    # Settled already: no gateway call, no promotion
    if payment.status == Payment.STATUS_SUCCESS:
        return payment
    if payment.status not in Payment.OPEN_STATUSES:
        return payment
    if payment.is_expired():
        return expire_payment(payment.pk)

    gw = gateway_for(payment.gateway, gateway)
    try:
        result = gw.verify(payment.external_reference)
    except GatewayUnavailable:
        _bump_retry(payment)
        logger.warning("verify for %s deferred: gateway unavailable", payment.internal_reference)
        raise

    if result.status == STATUS_SUCCESS:
        problem = _mismatch(payment, result.amount_minor, result.currency)
        if problem:
            logger.error("payment %s: %s", payment.internal_reference, problem)
            payment, _ = _mark_failed(payment.pk, problem, raw=result.raw)
            return payment
        payment, _ = _mark_success(payment.pk, fee_minor=result.fee_minor, channel=result.channel,
                                   paid_at=result.paid_at, raw=result.raw)
        if payment.status == Payment.STATUS_SUCCESS:
            # a concurrent webhook may have won the transition; promotion is idempotent either way
            _promote_safely(payment, Vote.METHOD_POLL)
        return payment

    if result.status == STATUS_FAILED:
        payment, _ = _mark_failed(payment.pk, result.message or "Payment failed at gateway", raw=result.raw)
        return payment

    Payment.objects.filter(pk=payment.pk).update(gateway_response=result.raw, updated=timezone.now())
    payment.refresh_from_db()
    return payment


# ============================================================================
# Webhook
# ============================================================================

def _ack(status: str, event: str = "", reference: str = "", **extra) -> Dict:
    return {"status": status, "event": event, "reference": reference, **extra}


def handle_webhook(raw_body: bytes, signature: Optional[str], *, gateway=None) -> Dict:
    """
    Authenticate and apply one gateway notification. ``raw_body`` must be the
    exact bytes received. Unknown events and references are acknowledged.
    """
    gw = gateway_for(gateway=gateway)
    if not gw.verify_signature(raw_body, signature):
        security_logger.warning("rejected %s webhook: invalid signature (%s bytes)", gw.name, len(raw_body or b""))
        raise InvalidSignature("Invalid webhook signature")

    event = gw.parse_event(raw_body)
    _write_gateway_log({
        "gateway": gw.name,
        "endpoint": f"webhook:{event.kind or '-'}",
        "status_code": 200,
        "reference": event.reference,
        "request": event.payload,
    }, direction=GatewayLog.DIRECTION_IN)

    if event.kind not in (EVENT_CHARGE_SUCCESS, EVENT_CHARGE_FAILED):
        logger.info("ignoring %s webhook event %r", gw.name, event.kind)
        return _ack("ignored", event.kind, event.reference, reason="unhandled_event")

    payment = (
        Payment.objects.filter(Q(internal_reference=event.reference) | Q(gateway_reference=event.reference)).first()
        if event.reference else None
    )
    if payment is None:
        logger.warning("%s webhook for unknown reference %r", gw.name, event.reference)
        return _ack("ignored", event.kind, event.reference, reason="unknown_reference")

    if event.kind == EVENT_CHARGE_SUCCESS and payment.status == Payment.STATUS_SUCCESS:
        return _ack("duplicate", event.kind, event.reference)

    # receipt metadata is only recorded while the payment is still unsettled
    Payment.objects.filter(pk=payment.pk).exclude(status=Payment.STATUS_SUCCESS).update(
        webhook_received=True,
        webhook_received_at=timezone.now(),
        webhook_attempts=F("webhook_attempts") + 1,
        webhook_signature=(signature or "")[:256],
        webhook_payload=event.payload,
    )

    if event.kind == EVENT_CHARGE_SUCCESS:
        problem = _mismatch(payment, event.amount_minor, event.currency)
        if problem:
            logger.error("payment %s: %s", payment.internal_reference, problem)
            payment, moved = _mark_failed(payment.pk, problem, raw=event.payload)
            return _ack("processed" if moved else "ignored", event.kind, event.reference, payment_status=payment.status)
        payment, moved = _mark_success(payment.pk, fee_minor=event.fee_minor, channel=event.channel,
                                       paid_at=event.paid_at, raw=event.payload)
        if not moved:
            return _ack("ignored", event.kind, event.reference, payment_status=payment.status)
        _promote_safely(payment, Vote.METHOD_WEBHOOK)
        return _ack("processed", event.kind, event.reference, payment_status=payment.status)

    payment, moved = _mark_failed(payment.pk, event.message or "Charge failed", raw=event.payload)
    return _ack("processed" if moved else "ignored", event.kind, event.reference, payment_status=payment.status)


# ============================================================================
# Promotion
# ============================================================================

def promote_to_vote(payment: Payment, method: str = Vote.METHOD_WEBHOOK) -> Vote:
    """
    Create the Vote for a successful payment. Returns the existing Vote when
    one is already there, including when a concurrent caller inserted it first.
    """
    existing = Vote.objects.filter(payment_id=payment.pk).first()
    if existing is not None:
        return existing
    if payment.status != Payment.STATUS_SUCCESS:
        raise InvalidTransition(f"Cannot promote a {payment.status} payment to a vote")

    now = timezone.now()
    try:
        with transaction.atomic():
            vote = Vote.objects.create(
                voter_id=payment.user_id,
                nominee_id=payment.nominee_id,
                category_id=payment.category_id,
                payment=payment,
                payment_reference=payment.internal_reference,
                transaction_reference=payment.gateway_reference or "",
                payment_method=payment.channel,
                amount=payment.amount,
                currency=payment.currency,
                processing_fee=payment.total_fees,
                net_amount=payment.net_amount,
                status=Vote.STATUS_CONFIRMED,
                verification_method=method,
                is_verified=True,
                verified_at=now,
                fraud_score=payment.fraud_score,
                is_flagged=payment.is_flagged,
                flag_reason=payment.flag_reason,
                ip_address=payment.ip_address,
                user_agent=payment.user_agent,
                device_fingerprint=payment.device_fingerprint,
            )
    except IntegrityError:
        vote = Vote.objects.filter(payment_id=payment.pk).first()
        if vote is None:
            raise
        logger.info("vote for %s already created by a concurrent caller", payment.internal_reference)
        return vote

    logger.info("vote %s created for payment %s (%s)", vote.pk, payment.internal_reference, method)
    try:
        recompute_nominee_statistics(payment.nominee_id)
    except Exception:
        # the vote is committed; requery_pending_payments repairs drifted statistics
        logger.exception("statistics refresh failed for nominee %s after vote %s", payment.nominee_id, vote.pk)
    return vote


def _promote_safely(payment: Payment, method: str) -> Optional[Vote]:
    # The success transition is already committed; a failure here is left for backfill.
    try:
        return promote_to_vote(payment, method)
    except Exception:
        logger.exception("vote promotion failed for payment %s; pending backfill", payment.internal_reference)
        return None


def payments_missing_votes():
    return Payment.objects.filter(status=Payment.STATUS_SUCCESS, vote__isnull=True).order_by("paid_at", "pk")


def backfill_missing_votes(actor=None, limit: Optional[int] = None) -> Dict:
    qs = payments_missing_votes()
    if limit:
        qs = qs[:limit]

    created, failed = 0, []
    for payment in qs:
        try:
            promote_to_vote(payment, Vote.METHOD_MANUAL)
        except Exception:
            logger.exception("backfill failed for payment %s", payment.internal_reference)
            failed.append(payment.internal_reference)
            continue
        Payment.objects.filter(pk=payment.pk).update(
            reconciled_at=timezone.now(), reconciled_by=actor, updated=timezone.now()
        )
        created += 1

    if created:
        logger.info("backfilled %s vote(s)", created)
    return {"created": created, "failed": failed}


# ============================================================================
# Refunds
# ============================================================================

def process_refund(payment_id, reason: str, actor, *, amount=None, gateway=None) -> Payment:
    payment = Payment.objects.filter(pk=payment_id).first()
    if payment is None:
        raise PaymentNotFound(f"No payment with id {payment_id}")
    if payment.status != Payment.STATUS_SUCCESS:
        raise InvalidTransition(f"Only successful payments can be refunded (status is {payment.status})")

    refund_amount = ledger.q(amount if amount is not None else payment.amount)
    if refund_amount <= 0 or refund_amount > payment.amount:
        raise ValidationError("Refund amount must be between 0 and the amount paid", code="invalid_refund_amount")

    gw = gateway_for(payment.gateway, gateway)
    result = gw.refund(payment.external_reference, ledger.to_minor(refund_amount), payment.currency, reason)

    now = timezone.now()
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(pk=payment_id)
        fields = ledger.transition(payment, ledger.REFUNDED, at=now)
        payment.refund_amount = refund_amount
        payment.refund_reason = reason[:500]
        payment.refund_reference = (result.reference or "")[:128]
        payment.refunded_by = actor
        payment.save(update_fields=fields + [
            "refund_amount", "refund_reason", "refund_reference", "refunded_by", "updated",
        ])
        Vote.objects.filter(payment=payment).update(
            status=Vote.STATUS_REFUNDED, refund_reason=reason[:500], refunded_at=now, updated=now
        )

    recompute_nominee_statistics(payment.nominee_id)
    logger.warning("payment %s refunded (%s) by %s", payment.internal_reference, refund_amount,
                   getattr(actor, "pk", None))
    return payment


# ============================================================================
# Admin review
# ============================================================================

def flag_vote(vote_id, reason: str, actor, score: Optional[int] = None) -> Vote:
    with transaction.atomic():
        vote = Vote.objects.select_for_update().get(pk=vote_id)
        vote.is_flagged = True
        vote.flag_reason = reason[:200]
        if score is not None:
            vote.fraud_score = max(0, min(int(score), 100))
        vote.reviewed_by = actor
        vote.reviewed_at = timezone.now()
        vote.save(update_fields=["is_flagged", "flag_reason", "fraud_score", "reviewed_by", "reviewed_at", "updated"])
        Payment.objects.filter(pk=vote.payment_id).update(is_flagged=True, flag_reason=vote.flag_reason)
    logger.warning("vote %s flagged by %s: %s", vote.pk, getattr(actor, "pk", None), vote.flag_reason)
    return vote


def clear_vote_flag(vote_id, actor, notes: str = "") -> Vote:
    with transaction.atomic():
        vote = Vote.objects.select_for_update().get(pk=vote_id)
        vote.is_flagged = False
        vote.review_notes = notes[:500]
        vote.reviewed_by = actor
        vote.reviewed_at = timezone.now()
        vote.save(update_fields=["is_flagged", "review_notes", "reviewed_by", "reviewed_at", "updated"])
        Payment.objects.filter(pk=vote.payment_id).update(is_flagged=False)
    logger.info("vote %s cleared by %s", vote.pk, getattr(actor, "pk", None))
    return vote


# ============================================================================
# Background reconciliation
# ============================================================================

def requery_pending_payments(age_minutes: int = 2, limit: int = 200, gateway=None) -> Dict:
    """Re-verify open payments older than ``age_minutes``; expire and backfill along the way."""
    expired = expire_stale_payments()
    cutoff = timezone.now() - timedelta(minutes=age_minutes)
    max_retries = int(getattr(settings, "PAYMENT_MAX_RETRIES", 3))
    qs = (
        Payment.objects.filter(status__in=Payment.OPEN_STATUSES, created__lte=cutoff,
                               retry_attempts__lt=max_retries)
        .order_by("created")
        .values_list("internal_reference", "status")[:limit]
    )

    checked, updated, errors = 0, 0, []
    for reference, status in list(qs):
        checked += 1
        try:
            payment = verify_payment(reference, gateway=gateway)
        except (GatewayError, PaymentNotFound) as e:
            errors.append(f"{reference}: {e}")
            continue
        if payment.status != status:
            updated += 1

    backfill = backfill_missing_votes()
    repaired = repair_statistics()
    return {
        "checked": checked,
        "updated": updated,
        "expired": expired,
        "backfilled": backfill["created"],
        "repaired": repaired,
        "errors": errors + [f"{ref}: backfill failed" for ref in backfill["failed"]],
    }
