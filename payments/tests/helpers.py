import hashlib
import hmac
import itertools
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from nominations.models import Category, Nominee
from payments import ledger
from payments.models import Payment
from users.models import User
from votes.models import Vote

WEBHOOK_SECRET = "test-webhook-secret"
BROWSER_UA = "Mozilla/5.0 (X11; Linux x86_64) CampusVoteTests"

_seq = itertools.count(1)


def make_user(email=None, **extra):
    n = next(_seq)
    extra.setdefault("first_name", f"Student{n}")
    extra.setdefault("last_name", "Tester")
    return User.objects.create_user(email=email or f"user{n}@eksu.edu.ng", password="pass12345", **extra)


def make_admin(**extra):
    return make_user(role=User.ROLE_ADMIN, is_staff=True, **extra)


def make_category(**extra):
    now = timezone.now()
    n = next(_seq)
    fields = {
        "name": f"Category {n}",
        "description": "Best of the year",
        "voting_start": now - timedelta(days=1),
        "voting_end": now + timedelta(days=1),
        "vote_price": Decimal("100.00"),
    }
    fields.update(extra)
    return Category.objects.create(**fields)


def make_nominee(category=None, student=None, **extra):
    fields = {
        "category": category or make_category(),
        "student": student or make_user(),
        "nomination_reason": "Outstanding contribution to campus life",
        "status": Nominee.STATUS_APPROVED,
    }
    fields.update(extra)
    return Nominee.objects.create(**fields)


def make_payment(user, nominee, status=Payment.STATUS_PENDING, amount=None, gateway="mock", **extra):
    amount = ledger.q(amount if amount is not None else nominee.category.vote_price)
    reference = extra.pop("internal_reference", None) or ledger.generate_reference()
    payment = Payment(
        user=user,
        nominee=nominee,
        category=nominee.category,
        amount=amount,
        gateway=gateway,
        internal_reference=reference,
        gateway_reference=extra.pop("gateway_reference", reference),
        expires_at=extra.pop("expires_at", None) or ledger.expiry_for(),
        status=status,
        **extra,
    )
    ledger.apply_fees(payment)
    if status == Payment.STATUS_SUCCESS and not payment.paid_at:
        payment.paid_at = timezone.now()
    payment.save()
    return payment


def make_vote(user, nominee, status=Vote.STATUS_CONFIRMED, amount=None, **extra):
    payment = make_payment(user, nominee, status=Payment.STATUS_SUCCESS, amount=amount,
                           ip_address=extra.pop("ip_address", None))
    return Vote.objects.create(
        voter=user,
        nominee=nominee,
        category=nominee.category,
        payment=payment,
        payment_reference=payment.internal_reference,
        amount=payment.amount,
        net_amount=payment.net_amount,
        status=status,
        is_verified=True,
        verified_at=timezone.now(),
        **extra,
    )


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()
