"""
Payment processor adapters, picked by ``settings.PAYMENT_GATEWAY``.

    gateway = get_gateway()               # configured default
    gateway = get_gateway("flutterwave")  # explicit
"""
from django.conf import settings

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
)
from .flutterwave import FlutterwaveGateway
from .mock import MockGateway
from .paystack import PaystackGateway

REGISTRY = {
    PaystackGateway.name: PaystackGateway,
    FlutterwaveGateway.name: FlutterwaveGateway,
    MockGateway.name: MockGateway,
}


def get_gateway(name=None, **kwargs) -> GatewayAdapter:
    name = (name or getattr(settings, "PAYMENT_GATEWAY", "paystack")).lower()
    try:
        cls = REGISTRY[name]
    except KeyError:
        raise ValueError(f"Unknown payment gateway: {name}") from None
    return cls(**kwargs)


__all__ = [
    "EVENT_CHARGE_FAILED",
    "EVENT_CHARGE_SUCCESS",
    "STATUS_FAILED",
    "STATUS_PENDING",
    "STATUS_SUCCESS",
    "GatewayAdapter",
    "InitializeResult",
    "RefundResult",
    "VerifyResult",
    "WebhookEvent",
    "FlutterwaveGateway",
    "MockGateway",
    "PaystackGateway",
    "REGISTRY",
    "get_gateway",
]
