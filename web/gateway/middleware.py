"""Request-scoped middleware for the storefront API.

``RequestIdMiddleware`` gives every request a correlation id: the
incoming ``X-Request-ID`` header when the client sent one, a fresh UUIDv4
otherwise. The id is stored on the request, in the ``REQUEST_ID_CTX``
ContextVar (read by the logging filter and by the outgoing HTTP
adapters) for the duration of the request, and echoed back in the response.

``ApiSizeLimitMiddleware`` rejects oversized bodies on ``/api/`` before
they reach a view.
"""

import contextvars
import uuid

from django.conf import settings
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")


class RequestIdMiddleware(MiddlewareMixin):
    """Assign, propagate and echo the request correlation id."""

    HEADER = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-ID"

    def process_request(self, request):
        rid = request.META.get(self.HEADER) or str(uuid.uuid4())
        request.request_id = rid
        request._request_id_token = REQUEST_ID_CTX.set(rid)

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None) or REQUEST_ID_CTX.get()
        response[self.RESPONSE_HEADER] = rid
        token = getattr(request, "_request_id_token", None)
        if token is not None:
            try:
                REQUEST_ID_CTX.reset(token)
            except ValueError:
                # token created in another context (sync middleware under ASGI)
                REQUEST_ID_CTX.set("-")
        return response


class ApiSizeLimitMiddleware(MiddlewareMixin):
    """Answer 413 for API requests larger than ``API_MAX_BYTES``."""

    def process_request(self, request):
        if not request.path.startswith("/api/"):
            return None
        limit = getattr(settings, "API_MAX_BYTES", 1024 * 1024)
        clen = request.META.get("CONTENT_LENGTH")
        if clen and clen.isdigit() and int(clen) > limit:
            return JsonResponse({"detail": "PAYLOAD_TOO_LARGE"}, status=413)
        return None
