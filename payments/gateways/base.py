from __future__ import annotations

import abc
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

import requests
from django.utils.dateparse import parse_datetime

from ..exceptions import GatewayRejected, GatewayUnavailable, MalformedPayload

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5
READ_TIMEOUT = 25
DEFAULT_TIMEOUT = (CONNECT_TIMEOUT, READ_TIMEOUT)
MAX_RETRIES = 1  # retry only pre-flight network errors; never on HTTP responses

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_PENDING = "pending"

EVENT_CHARGE_SUCCESS = "charge.success"
EVENT_CHARGE_FAILED = "charge.failed"

LogFn = Callable[[Dict], None]


# ============================================================================
# Results
# ============================================================================

@dataclass
class InitializeResult:
    external_reference: str
    checkout_url: str
    access_code: str = ""
    raw: Dict = field(default_factory=dict)


@dataclass
class VerifyResult:
    status: str  # success | failed | pending
    amount_minor: Optional[int] = None
    currency: str = ""
    fee_minor: int = 0
    channel: str = ""
    paid_at: Optional[datetime] = None
    message: str = ""
    raw: Dict = field(default_factory=dict)


@dataclass
class RefundResult:
    reference: str
    status: str
    raw: Dict = field(default_factory=dict)


@dataclass
class WebhookEvent:
    kind: str  # charge.success | charge.failed | anything else passes through
    reference: str
    status: str = ""
    amount_minor: Optional[int] = None
    currency: str = ""
    fee_minor: int = 0
    channel: str = ""
    paid_at: Optional[datetime] = None
    message: str = ""
    data: Dict = field(default_factory=dict)
    payload: Dict = field(default_factory=dict)


# ============================================================================
# Masking
# ============================================================================

SENSITIVE_KEYS = {"email", "customer_email", "authorization_code", "secret", "Authorization", "card"}


def _mask_value(val: Any) -> str:
    if not val:
        return ""
    s = str(val)
    if "@" in s:
        name, _, domain = s.partition("@")
        return (name[:2] + "***@" + domain) if name else "***@" + domain
    if len(s) > 6:
        return s[:3] + "***" + s[-3:]
    return "***"


def mask_payload(payload: Any) -> Any:
    if isinstance(payload, dict):
        return {k: (_mask_value(v) if k in SENSITIVE_KEYS and not isinstance(v, (dict, list)) else mask_payload(v))
                for k, v in payload.items()}
    if isinstance(payload, list):
        return [mask_payload(v) for v in payload]
    return payload


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parse_datetime(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ============================================================================
# Adapter
# ============================================================================

class GatewayAdapter(abc.ABC):
    """
    One payment processor. Implementations only talk to the network; they
    never touch the database. ``log_fn`` receives masked request/response
    records so callers can persist them.
    """

    name: str = ""
    signature_header: str = ""
    base_url: str = ""

    def __init__(self, *, session: Optional[requests.Session] = None, log_fn: Optional[LogFn] = None,
                 timeout: Tuple[int, int] = DEFAULT_TIMEOUT, retries: int = MAX_RETRIES):
        self.session = session or requests.Session()
        self.log_fn = log_fn
        self.timeout = timeout
        self.retries = retries

    # -- capability set ------------------------------------------------------

    @abc.abstractmethod
    def initialize(self, reference: str, amount_minor: int, currency: str, email: str,
                   callback_url: Optional[str] = None, metadata: Optional[Dict] = None) -> InitializeResult:
        ...

    @abc.abstractmethod
    def verify(self, external_reference: str) -> VerifyResult:
        ...

    @abc.abstractmethod
    def verify_signature(self, raw_body: bytes, signature: Optional[str]) -> bool:
        ...

    @abc.abstractmethod
    def parse_event(self, raw_body: bytes) -> WebhookEvent:
        ...

    @abc.abstractmethod
    def refund(self, external_reference: str, amount_minor: int, currency: str, reason: str = "") -> RefundResult:
        ...

    # -- helpers -------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def _log(self, endpoint: str, status_code: int, request: Optional[Dict], response: Dict,
             reference: str = "") -> None:
        if not self.log_fn:
            return
        self.log_fn({
            "gateway": self.name,
            "endpoint": endpoint,
            "status_code": status_code,
            "reference": reference,
            "request": mask_payload(request or {}),
            "response": mask_payload(response),
        })

    @staticmethod
    def _safe_json(resp: requests.Response) -> Dict:
        try:
            body = resp.json()
        except ValueError:
            return {"raw": getattr(resp, "text", ""), "http_status": resp.status_code}
        if isinstance(body, dict):
            return body
        return {"raw": body, "http_status": resp.status_code}

    def _network_failure(self, path: str, request: Optional[Dict], error: Exception,
                         reference: str) -> GatewayUnavailable:
        self._log(path, 0, request, {"error": str(error)}, reference)
        logger.warning("%s %s network error: %s", self.name, path, error)
        return GatewayUnavailable(f"{self.name} unreachable: {error}")

    def _request(self, method: str, path: str, *, json_body: Optional[Dict] = None,
                 params: Optional[Dict] = None, reference: str = "") -> Dict:
        """
        Minimal retry loop for pre-flight network errors only (connection
        refused, connect timeout). A read timeout means the request may have
        been processed, so it is never retried, and neither is any HTTP response.

        Returns the parsed body of a 2xx response; raises GatewayUnavailable
        for network errors and 5xx, GatewayRejected for other non-2xx.
        """
        url = f"{self.base_url}{path}"
        for attempt in range(self.retries + 1):
            try:
                resp = self.session.request(
                    method=method,
                    url=url,
                    headers=self._headers(),
                    json=json_body,
                    params=params,
                    timeout=self.timeout,
                )
            except requests.exceptions.ConnectionError as e:
                # includes ConnectTimeout; nothing reached the gateway
                if attempt < self.retries:
                    time.sleep(0.8)
                    continue
                raise self._network_failure(path, json_body or params, e, reference) from e
            except requests.exceptions.Timeout as e:
                raise self._network_failure(path, json_body or params, e, reference) from e

            body = self._safe_json(resp)
            self._log(path, resp.status_code, json_body or params, body, reference)
            if resp.status_code >= 500:
                raise GatewayUnavailable(f"{self.name} returned HTTP {resp.status_code}",
                                         status_code=resp.status_code, payload=body)
            if resp.status_code >= 400:
                raise GatewayRejected(str(body.get("message") or f"{self.name} rejected the request"),
                                      status_code=resp.status_code, payload=body)
            return body

        raise GatewayUnavailable(f"{self.name} request was not attempted")

    @staticmethod
    def _load_json(raw_body: bytes) -> Dict:
        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedPayload("Webhook body is not valid JSON") from e
        if not isinstance(payload, dict):
            raise MalformedPayload("Webhook body must be a JSON object")
        return payload
