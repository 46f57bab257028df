"""Request-scoped middleware for API requests."""

import logging
import re
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from utils.request_context import set_request_id

logger = logging.getLogger(__name__)

# Client-supplied IDs are reused only if they look like an ID
_ACCEPTED_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an ID and logs its outcome.

    An incoming X-Request-ID is honoured when well-formed so IDs can be
    traced across a proxy; otherwise a fresh UUID is assigned. The ID is
    available as request.state.request_id, in the response envelope's
    meta.request_id, and in the X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get("X-Request-ID", "")
        request_id = incoming if _ACCEPTED_REQUEST_ID.match(incoming) else str(uuid4())

        request.state.request_id = request_id
        set_request_id(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            set_request_id(None)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({elapsed_ms:.1f}ms) [{request_id}]"
        )
        response.headers["X-Request-ID"] = request_id
        return response
