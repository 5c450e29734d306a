import hashlib
import hmac
import json
from typing import Dict, Optional

from django.conf import settings
from django.utils import timezone

from ..exceptions import GatewayRejected, GatewayUnavailable
from .base import (
    EVENT_CHARGE_FAILED,
    EVENT_CHARGE_SUCCESS,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SUCCESS,
    GatewayAdapter,
    InitializeResult,
    RefundResult,
    VerifyResult,
    WebhookEvent,
    parse_timestamp,
    to_int,
)

OUTCOMES = (STATUS_SUCCESS, STATUS_FAILED, STATUS_PENDING, "unavailable", "rejected")


class MockGateway(GatewayAdapter):
    """
    Offline gateway for local development and tests.

    ``outcome`` decides what ``verify`` reports (and whether calls fail).
    Webhooks use the Paystack body layout, signed with HMAC-SHA512 hex.
    """

    name = "mock"
    signature_header = "X-Mock-Signature"

    def __init__(self, *, outcome: Optional[str] = None, secret: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.outcome = (outcome or getattr(settings, "MOCK_GATEWAY_OUTCOME", STATUS_SUCCESS)).lower()
        if self.outcome not in OUTCOMES:
            raise ValueError(f"Unknown mock outcome: {self.outcome}")
        self.secret = secret if secret is not None else getattr(settings, "MOCK_GATEWAY_SECRET", "")
        # reference -> (amount_minor, currency) for everything initialized by this instance
        self.charges: Dict[str, tuple] = {}

    def _maybe_fail(self, endpoint: str, reference: str):
        if self.outcome == "unavailable":
            self._log(endpoint, 503, {"reference": reference}, {"error": "mock unavailable"}, reference)
            raise GatewayUnavailable("mock gateway unavailable", status_code=503)
        if self.outcome == "rejected":
            self._log(endpoint, 400, {"reference": reference}, {"error": "mock rejected"}, reference)
            raise GatewayRejected("mock gateway rejected the request", status_code=400)

    def initialize(self, reference, amount_minor, currency, email, callback_url=None, metadata=None):
        self._maybe_fail("/initialize", reference)
        self.charges[reference] = (amount_minor, currency)
        base = getattr(settings, "FRONTEND_URL", "http://localhost:3000").rstrip("/")
        body = {
            "status": True,
            "data": {"reference": reference, "authorization_url": f"{base}/mock-checkout/{reference}",
                     "access_code": f"mock_{reference.lower()}"},
        }
        self._log("/initialize", 200, {"reference": reference, "amount": amount_minor, "email": email}, body,
                  reference)
        return InitializeResult(
            external_reference=reference,
            checkout_url=body["data"]["authorization_url"],
            access_code=body["data"]["access_code"],
            raw=body,
        )

    def verify(self, external_reference):
        self._maybe_fail("/verify", external_reference)
        amount_minor, currency = self.charges.get(external_reference, (None, ""))
        body = {"status": True, "data": {"reference": external_reference, "status": self.outcome}}
        self._log("/verify", 200, {"reference": external_reference}, body, external_reference)
        return VerifyResult(
            status=self.outcome,
            amount_minor=amount_minor,
            currency=currency,
            channel="card",
            paid_at=timezone.now() if self.outcome == STATUS_SUCCESS else None,
            message="Approved" if self.outcome == STATUS_SUCCESS else self.outcome,
            raw=body,
        )

    def sign(self, raw_body: bytes) -> str:
        return hmac.new(self.secret.encode(), raw_body, hashlib.sha512).hexdigest()

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        if not signature or not self.secret:
            return False
        return hmac.compare_digest(self.sign(raw_body), signature.strip())

    def build_event(self, reference: str, *, kind: str = EVENT_CHARGE_SUCCESS, amount_minor: Optional[int] = None,
                    currency: str = "NGN") -> bytes:
        """Serialized webhook body, as the mock would POST it."""
        status = STATUS_SUCCESS if kind == EVENT_CHARGE_SUCCESS else STATUS_FAILED
        return json.dumps({
            "event": kind,
            "data": {"reference": reference, "status": status, "amount": amount_minor, "currency": currency,
                     "channel": "card", "paid_at": timezone.now().isoformat()},
        }).encode()

    def parse_event(self, raw_body: bytes) -> WebhookEvent:
        payload = self._load_json(raw_body)
        data = payload.get("data") or {}
        event = str(payload.get("event") or "")
        if event == EVENT_CHARGE_SUCCESS and str(data.get("status", "")).lower() not in ("", STATUS_SUCCESS):
            event = EVENT_CHARGE_FAILED
        return WebhookEvent(
            kind=event,
            reference=str(data.get("reference") or ""),
            status=str(data.get("status") or ""),
            amount_minor=to_int(data.get("amount")),
            currency=str(data.get("currency") or ""),
            fee_minor=to_int(data.get("fees")) or 0,
            channel=str(data.get("channel") or ""),
            paid_at=parse_timestamp(data.get("paid_at")),
            message=str(data.get("gateway_response") or ""),
            data=data,
            payload=payload,
        )

    def refund(self, external_reference, amount_minor, currency, reason=""):
        self._maybe_fail("/refund", external_reference)
        body = {"status": True, "data": {"transaction": {"reference": external_reference}, "status": "processed"}}
        self._log("/refund", 200, {"reference": external_reference, "amount": amount_minor}, body,
                  external_reference)
        return RefundResult(reference=f"RF_{external_reference}", status="processed", raw=body)
