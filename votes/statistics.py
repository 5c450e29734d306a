"""
Vote aggregates, always computed from confirmed Vote rows.

Nominee columns are a cache of ``nominee_statistics``; every write goes
through ``recompute_nominee_statistics`` so repeated calls converge on the
same values. Category, leaderboard and payment figures are computed on read.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from django.db import transaction
from django.db.models import Avg, Count, DecimalField, F, Max, Q, Sum, Value
from django.db.models.functions import Coalesce

from nominations.models import Category, Nominee
from payments.ledger import q
from payments.models import Payment

from .models import Vote

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
_MONEY = DecimalField(max_digits=14, decimal_places=2)


def _confirmed(**filters):
    return Vote.objects.filter(status=Vote.STATUS_CONFIRMED, **filters)


def nominee_statistics(nominee_id) -> Dict:
    agg = _confirmed(nominee_id=nominee_id).aggregate(
        total_votes=Count("id"),
        total_revenue=Sum("amount"),
        unique_voters=Count("voter", distinct=True),
        last_vote_at=Max("created"),
    )
    total_votes = agg["total_votes"] or 0
    total_revenue = q(agg["total_revenue"] or ZERO)
    return {
        "total_votes": total_votes,
        "total_revenue": total_revenue,
        "unique_voters": agg["unique_voters"] or 0,
        "average_vote_value": q(total_revenue / total_votes) if total_votes else ZERO,
        "last_vote_at": agg["last_vote_at"],
    }


def rerank_category(category_id) -> None:
    ordered = (
        Nominee.objects.filter(category_id=category_id)
        .order_by("-total_votes", "-total_revenue", "created", "pk")
        .values_list("pk", "rank")
    )
    for position, (pk, rank) in enumerate(ordered, start=1):
        if rank != position:
            Nominee.objects.filter(pk=pk).update(rank=position)


def _locked_nominee(nominee_id) -> Nominee:
    return Nominee.objects.select_for_update().get(pk=nominee_id)


def recompute_nominee_statistics(nominee_id) -> Dict:
    # aggregates are read under the nominee row lock so concurrent writers serialize
    with transaction.atomic():
        nominee = _locked_nominee(nominee_id)
        stats = nominee_statistics(nominee_id)
        for key, value in stats.items():
            setattr(nominee, key, value)
        nominee.save(update_fields=list(stats.keys()) + ["updated"])
        rerank_category(nominee.category_id)
    logger.debug("nominee %s stats recomputed: %s votes", nominee_id, stats["total_votes"])
    return stats


def recompute_category(category_id) -> int:
    count = 0
    for nominee_id in Nominee.objects.filter(category_id=category_id).values_list("pk", flat=True):
        recompute_nominee_statistics(nominee_id)
        count += 1
    return count


def drifted_nominees():
    """Nominees whose cached count or revenue disagrees with their confirmed votes."""
    confirmed = Q(votes__status=Vote.STATUS_CONFIRMED)
    return (
        Nominee.objects.annotate(
            vote_count=Count("votes", filter=confirmed),
            revenue=Coalesce(Sum("votes__amount", filter=confirmed), Value(ZERO), output_field=_MONEY),
        )
        .filter(~Q(total_votes=F("vote_count")) | ~Q(total_revenue=F("revenue")))
        .order_by("pk")
    )


def repair_statistics() -> int:
    repaired = 0
    for nominee_id in drifted_nominees().values_list("pk", flat=True):
        recompute_nominee_statistics(nominee_id)
        repaired += 1
    if repaired:
        logger.warning("repaired stale statistics for %s nominee(s)", repaired)
    return repaired


def category_statistics(category_id) -> Dict:
    category = Category.objects.get(pk=category_id)
    agg = _confirmed(category_id=category_id).aggregate(
        total_votes=Count("id"),
        total_revenue=Sum("amount"),
        unique_voters=Count("voter", distinct=True),
        last_vote_at=Max("created"),
    )
    return {
        "category_id": category.pk,
        "category": category.name,
        "is_voting_open": category.is_voting_open(),
        "nominees": Nominee.objects.filter(category_id=category_id, status=Nominee.STATUS_APPROVED).count(),
        "total_votes": agg["total_votes"] or 0,
        "total_revenue": q(agg["total_revenue"] or ZERO),
        "unique_voters": agg["unique_voters"] or 0,
        "last_vote_at": agg["last_vote_at"],
        "leaderboard": leaderboard(category_id=category_id, limit=10),
    }


def leaderboard(category_id=None, limit: int = 50) -> List[Dict]:
    confirmed = Q(votes__status=Vote.STATUS_CONFIRMED)
    qs = Nominee.objects.filter(status=Nominee.STATUS_APPROVED, is_active=True, is_disqualified=False)
    if category_id is not None:
        qs = qs.filter(category_id=category_id)
    qs = (
        qs.select_related("student", "category")
        .annotate(
            vote_count=Count("votes", filter=confirmed),
            revenue=Coalesce(Sum("votes__amount", filter=confirmed), Value(ZERO), output_field=_MONEY),
        )
        .order_by("-vote_count", "-revenue", "created", "pk")[:limit]
    )
    rows = []
    for position, n in enumerate(qs, start=1):
        rows.append({
            "position": position,
            "nominee_id": n.pk,
            "name": n.student.get_full_name() or n.student.email,
            "category_id": n.category_id,
            "category": n.category.name,
            "total_votes": n.vote_count,
            "total_revenue": q(n.revenue),
        })
    return rows


def payment_statistics(start=None, end=None, category_id: Optional[int] = None) -> Dict:
    qs = Payment.objects.all()
    if start:
        qs = qs.filter(created__gte=start)
    if end:
        qs = qs.filter(created__lte=end)
    if category_id is not None:
        qs = qs.filter(category_id=category_id)

    by_status = {row["status"]: row["n"] for row in qs.values("status").annotate(n=Count("id"))}
    success = qs.filter(status=Payment.STATUS_SUCCESS)
    money = success.aggregate(
        revenue=Sum("amount"), fees=Sum("total_fees"), net=Sum("net_amount"), average=Avg("amount"),
    )
    refunded = qs.filter(status=Payment.STATUS_REFUNDED).aggregate(total=Sum("refund_amount"))["total"]
    total = sum(by_status.values())
    settled = by_status.get(Payment.STATUS_SUCCESS, 0) + by_status.get(Payment.STATUS_REFUNDED, 0)

    return {
        "total_payments": total,
        "by_status": by_status,
        "by_gateway": {row["gateway"]: row["n"] for row in success.values("gateway").annotate(n=Count("id"))},
        "total_revenue": q(money["revenue"] or ZERO),
        "total_fees": q(money["fees"] or ZERO),
        "net_revenue": q(money["net"] or ZERO),
        "average_payment": q(money["average"] or ZERO),
        "total_refunded": q(refunded or ZERO),
        "success_rate": round(settled * 100.0 / total, 2) if total else 0.0,
        "flagged": qs.filter(is_flagged=True).count(),
    }
