"""
Error taxonomy for the payment -> vote flow.

Every error carries the HTTP status the API layer should answer with and a
short machine-readable ``code``. Gateway errors are retryable; the payment
stays ``pending`` and either the client retries or the TTL expires it.
"""


class ReconciliationError(Exception):
    http_status = 400
    code = "error"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        if code:
            self.code = code

    def as_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class ValidationError(ReconciliationError):
    """Caller-fixable: wrong amount, closed voting window, vote cap reached..."""

    http_status = 400
    code = "invalid"


class PaymentNotFound(ReconciliationError):
    http_status = 404
    code = "payment_not_found"


class InvalidTransition(ReconciliationError):
    http_status = 409
    code = "invalid_transition"


class DuplicateReference(ReconciliationError):
    http_status = 409
    code = "duplicate_reference"


class InvalidSignature(ReconciliationError):
    http_status = 401
    code = "invalid_signature"


class MalformedPayload(ReconciliationError):
    http_status = 400
    code = "malformed_payload"


class GatewayError(ReconciliationError):
    http_status = 502
    code = "gateway_error"

    def __init__(self, message: str = "", *, code: str | None = None, status_code: int | None = None,
                 payload: dict | None = None):
        super().__init__(message, code=code)
        self.status_code = status_code
        self.payload = payload or {}


class GatewayUnavailable(GatewayError):
    """Network error, timeout or 5xx from the processor."""

    http_status = 503
    code = "gateway_unavailable"


class GatewayRejected(GatewayError):
    """Processor-side validation error (4xx or ``status: false``)."""

    http_status = 502
    code = "gateway_rejected"
