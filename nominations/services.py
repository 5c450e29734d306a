from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from .models import Nominee

logger = logging.getLogger(__name__)


class NominationError(Exception):
    pass


@transaction.atomic
def review_nominee(nominee_id: int, *, approve: bool, actor, notes: str = "") -> Nominee:
    nominee = Nominee.objects.select_for_update().get(pk=nominee_id)
    if nominee.is_disqualified:
        raise NominationError("Disqualified nominees cannot be reviewed")

    now = timezone.now()
    nominee.status = Nominee.STATUS_APPROVED if approve else Nominee.STATUS_REJECTED
    nominee.review_notes = notes[:500]
    nominee.reviewed_by = actor
    nominee.reviewed_at = now
    if approve and not nominee.approved_at:
        nominee.approved_at = now
    nominee.save(update_fields=["status", "review_notes", "reviewed_by", "reviewed_at", "approved_at", "updated"])
    logger.info("nominee %s %s by %s", nominee.pk, nominee.status, getattr(actor, "pk", None))
    return nominee


@transaction.atomic
def disqualify_nominee(nominee_id: int, *, reason: str, actor) -> Nominee:
    nominee = Nominee.objects.select_for_update().get(pk=nominee_id)
    nominee.is_disqualified = True
    nominee.disqualification_reason = reason[:500]
    nominee.disqualified_at = timezone.now()
    nominee.reviewed_by = actor
    nominee.save(update_fields=[
        "is_disqualified", "disqualification_reason", "disqualified_at", "reviewed_by", "updated",
    ])
    logger.warning("nominee %s disqualified by %s", nominee.pk, getattr(actor, "pk", None))
    return nominee
