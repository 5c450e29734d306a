# core/middleware.py
import logging
import uuid

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware:
    """Tags every request with an id (client-supplied or generated) and echoes it back."""

    def __init__(self, get_response): self.get_response = get_response

    def __call__(self, request):
        request.request_id = (request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex)[:64]
        resp = self.get_response(request)
        resp[REQUEST_ID_HEADER] = request.request_id
        if resp.status_code >= 500:
            logger.error("request %s %s failed with %s (id=%s)",
                         request.method, request.path, resp.status_code, request.request_id)
        return resp
