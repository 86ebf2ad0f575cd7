"""
Request-scoped middleware.

- **Request ID**: honours or generates ``X-Request-ID``, exposes it on
  ``request.state`` and in the logging context, and echoes it back.
- **Access log**: adds ``X-Process-Time`` and writes one line per request,
  tagged with the caller's ``X-User-ID`` so ledger activity can be traced
  back to an owner.  Slow requests are logged as warnings.
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from investtrack.api.deps import USER_ID_HEADER
from investtrack.core.logging import request_id_ctx

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"
SLOW_REQUEST_MS = 500


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags every request/response cycle with a correlation id."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Access log with wall-clock duration and the calling owner."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers[PROCESS_TIME_HEADER] = f"{elapsed_ms:.2f}ms"

        # Raw header value; get_current_owner does the validation.
        owner = request.headers.get(USER_ID_HEADER)
        log = logger.warning if elapsed_ms > SLOW_REQUEST_MS else logger.info
        log(
            "%s %s -> %d in %.2fms (owner=%s)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            owner or "-",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "elapsed_ms": round(elapsed_ms, 2),
                "owner_id": owner,
            },
        )
        return response
