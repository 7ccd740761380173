"""Per-request structlog context and response timing."""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from shared.constants import SHOPIFY_TOPIC_HEADER, SHOPIFY_WEBHOOK_ID_HEADER

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-Id"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request id, path and Shopify webhook headers into log context.

    Adds X-Request-Id and X-Response-Time-Ms headers to every response.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        context = {
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        }
        topic = request.headers.get(SHOPIFY_TOPIC_HEADER)
        if topic:
            context["topic"] = topic
        webhook_id = request.headers.get(SHOPIFY_WEBHOOK_ID_HEADER)
        if webhook_id:
            context["webhook_id"] = webhook_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**context)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            structlog.contextvars.clear_contextvars()

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration_ms)

        logger.debug(
            "request_completed",
            request_id=request_id,
            path=request.url.path,
            method=request.method,
            status=response.status_code,
            duration_ms=duration_ms,
        )

        return response
