import base64
import hashlib
import hmac
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

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
)

STATUS_MAP = {
    "successful": STATUS_SUCCESS,
    "success": STATUS_SUCCESS,
    "failed": STATUS_FAILED,
    "cancelled": STATUS_FAILED,
    "pending": STATUS_PENDING,
}


def _major_to_minor(value: Any) -> Optional[int]:
    """Flutterwave reports amounts in major units."""
    if value in (None, ""):
        return None
    try:
        return int((Decimal(str(value)) * 100).to_integral_value())
    except InvalidOperation:
        return None


def _minor_to_major(value: int) -> str:
    return str((Decimal(int(value)) / 100).quantize(Decimal("0.01")))


class FlutterwaveGateway(GatewayAdapter):
    name = "flutterwave"
    signature_header = "Flutterwave-Signature"

    def __init__(self, *, secret_key: Optional[str] = None, webhook_secret: Optional[str] = None,
                 base_url: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.secret_key = secret_key if secret_key is not None else getattr(settings, "FLUTTERWAVE_SECRET_KEY", "")
        self.webhook_secret = (webhook_secret if webhook_secret is not None
                               else getattr(settings, "FLUTTERWAVE_WEBHOOK_SECRET", ""))
        self.base_url = (base_url or getattr(settings, "FLUTTERWAVE_BASE_URL",
                                             "https://api.flutterwave.com/v3")).rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.secret_key}", "Content-Type": "application/json"}

    @staticmethod
    def _data(body: Dict, what: str) -> Dict:
        if str(body.get("status", "")).lower() != "success":
            raise GatewayRejected(str(body.get("message") or f"Flutterwave {what} failed"), payload=body)
        return body.get("data") or {}

    def initialize(self, reference, amount_minor, currency, email, callback_url=None, metadata=None):
        payload = {
            "tx_ref": reference,
            "amount": _minor_to_major(amount_minor),
            "currency": currency,
            "customer": {"email": email},
            "payment_options": "card,banktransfer,ussd",
        }
        if metadata: payload["meta"] = metadata
        if callback_url: payload["redirect_url"] = callback_url

        body = self._request("POST", "/payments", json_body=payload, reference=reference)
        data = self._data(body, "initialization")
        # Flutterwave only assigns its own id after the charge; tx_ref is the lookup key until then
        return InitializeResult(external_reference=reference, checkout_url=data.get("link") or "", raw=body)

    def verify(self, external_reference):
        body = self._request("GET", "/transactions/verify_by_reference",
                             params={"tx_ref": external_reference}, reference=external_reference)
        data = self._data(body, "verification")
        return VerifyResult(
            status=STATUS_MAP.get(str(data.get("status", "")).lower(), STATUS_PENDING),
            amount_minor=_major_to_minor(data.get("amount")),
            currency=str(data.get("currency") or ""),
            fee_minor=_major_to_minor(data.get("app_fee")) or 0,
            channel=str(data.get("payment_type") or ""),
            paid_at=parse_timestamp(data.get("created_at")),
            message=str(data.get("processor_response") or ""),
            raw=body,
        )

    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        if not signature or not self.webhook_secret:
            return False
        digest = base64.b64encode(hmac.new(self.webhook_secret.encode(), raw_body, hashlib.sha256).digest()).decode()
        return hmac.compare_digest(digest, signature.strip())

    def parse_event(self, raw_body: bytes) -> WebhookEvent:
        payload = self._load_json(raw_body)
        data = payload.get("data") or {}
        status = str(data.get("status") or "").lower()
        event = str(payload.get("event") or payload.get("type") or "")
        if event == "charge.completed":
            event = EVENT_CHARGE_SUCCESS if STATUS_MAP.get(status) == STATUS_SUCCESS else EVENT_CHARGE_FAILED
        return WebhookEvent(
            kind=event,
            reference=str(data.get("tx_ref") or ""),
            status=status,
            amount_minor=_major_to_minor(data.get("amount")),
            currency=str(data.get("currency") or ""),
            fee_minor=_major_to_minor(data.get("app_fee")) or 0,
            channel=str(data.get("payment_type") or ""),
            paid_at=parse_timestamp(data.get("created_at")),
            message=str(data.get("processor_response") or ""),
            data=data,
            payload=payload,
        )

    def refund(self, external_reference, amount_minor, currency, reason=""):
        # Refunds are keyed by Flutterwave's transaction id, so look it up first
        tx = self._data(
            self._request("GET", "/transactions/verify_by_reference",
                          params={"tx_ref": external_reference}, reference=external_reference),
            "verification",
        )
        tx_id = tx.get("id")
        if not tx_id:
            raise GatewayRejected("Flutterwave transaction id missing for refund")
        body = self._request("POST", f"/transactions/{tx_id}/refund",
                             json_body={"amount": _minor_to_major(amount_minor), "comments": reason},
                             reference=external_reference)
        data = self._data(body, "refund")
        return RefundResult(
            reference=str(data.get("id") or tx_id),
            status=str(data.get("status") or "pending"),
            raw=body,
        )
