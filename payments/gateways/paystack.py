import hashlib
import hmac
from typing import Dict, Optional

from django.conf import settings

from ..exceptions import GatewayRejected
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

CHANNELS = ["card", "bank", "ussd", "qr", "mobile_money", "bank_transfer"]

# "abandoned" means the checkout page was opened but not completed yet
STATUS_MAP = {
    "success": STATUS_SUCCESS,
    "failed": STATUS_FAILED,
    "reversed": STATUS_FAILED,
    "abandoned": STATUS_PENDING,
    "ongoing": STATUS_PENDING,
    "pending": STATUS_PENDING,
    "processing": STATUS_PENDING,
    "queued": STATUS_PENDING,
}


class PaystackGateway(GatewayAdapter):
    name = "paystack"
    signature_header = "X-Paystack-Signature"

    def __init__(self, *, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None,
                 base_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.secret_key = secret_key if secret_key is not None else getattr(settings, "PAYSTACK_SECRET_KEY", "")
        # Paystack signs webhooks with the secret key unless a dedicated secret is configured
        self.webhook_secret = (webhook_secret if webhook_secret is not None
                               else getattr(settings, "PAYSTACK_WEBHOOK_SECRET", "")) or self.secret_key
        self.base_url = (base_url or getattr(settings, "PAYSTACK_BASE_URL", "https://api.paystack.co")).rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.secret_key}", "Content-Type": "application/json"}

    @staticmethod
    def _data(body: Dict, what: str) -> Dict:
        if not body.get("status"):
            raise GatewayRejected(str(body.get("message") or f"Paystack {what} failed"), payload=body)
        return body.get("data") or {}

    def initialize(self, reference, amount_minor, currency, email, callback_url=None, metadata=None):
        payload = {
            "email": email,
            "amount": amount_minor,
            "currency": currency,
            "reference": reference,
            "channels": CHANNELS,
        }
        if metadata: payload["metadata"] = metadata
        if callback_url: payload["callback_url"] = callback_url

        body = self._request("POST", "/transaction/initialize", json_body=payload, reference=reference)
        data = self._data(body, "initialization")
        return InitializeResult(
            external_reference=data.get("reference") or reference,
            checkout_url=data.get("authorization_url") or "",
            access_code=data.get("access_code") or "",
            raw=body,
        )

    def verify(self, external_reference):
        body = self._request("GET", f"/transaction/verify/{external_reference}", reference=external_reference)
        data = self._data(body, "verification")
        return VerifyResult(
            status=STATUS_MAP.get(str(data.get("status", "")).lower(), STATUS_PENDING),
            amount_minor=to_int(data.get("amount")),
            currency=str(data.get("currency") or ""),
            fee_minor=to_int(data.get("fees")) or 0,
            channel=str(data.get("channel") or ""),
            paid_at=parse_timestamp(data.get("paid_at") or data.get("paidAt")),
            message=str(data.get("gateway_response") or ""),
            raw=body,
        )

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        if not signature or not self.webhook_secret:
            return False
        digest = hmac.new(self.webhook_secret.encode(), raw_body, hashlib.sha512).hexdigest()
        return hmac.compare_digest(digest, signature.strip())

    def parse_event(self, raw_body: bytes) -> WebhookEvent:
        payload = self._load_json(raw_body)
        data = payload.get("data") or {}
        event = str(payload.get("event") or "")
        # Paystack sends charge.success for failures of some channels too; trust data.status
        if event == EVENT_CHARGE_SUCCESS and str(data.get("status", "")).lower() not in ("", "success"):
            event = EVENT_CHARGE_FAILED
        return WebhookEvent(
            kind=event,
            reference=str(data.get("reference") or ""),
            status=str(data.get("status") or ""),
            amount_minor=to_int(data.get("amount")),
            currency=str(data.get("currency") or ""),
            fee_minor=to_int(data.get("fees")) or 0,
            channel=str(data.get("channel") or ""),
            paid_at=parse_timestamp(data.get("paid_at") or data.get("paidAt")),
            message=str(data.get("gateway_response") or ""),
            data=data,
            payload=payload,
        )

    def refund(self, external_reference, amount_minor, currency, reason=""):
        payload = {
            "transaction": external_reference,
            "amount": amount_minor,
            "currency": currency,
            "customer_note": reason,
            "merchant_note": f"Refund for vote payment - {reason}",
        }
        body = self._request("POST", "/refund", json_body=payload, reference=external_reference)
        data = self._data(body, "refund")
        tx = data.get("transaction") or {}
        return RefundResult(
            reference=str(tx.get("reference") or data.get("id") or external_reference),
            status=str(data.get("status") or "pending"),
            raw=body,
        )
