"""Request ID + access log middleware.

Learn: Each request is tagged with an id: the caller's X-Request-ID when
it looks sane (short, printable), otherwise a fresh UUID. The id, method
and path go into structlog's contextvars, so auth failures, task changes
and unhandled errors logged during the request all carry them. When the
response is ready one `http.request` event records status and latency,
and the id is echoed back in the X-Request-ID header.
"""

import re
import time
import uuid
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def pick_request_id(incoming: Optional[str]) -> str:
    """Reuse the caller's id if it is well-formed, else mint a new one."""
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and log its outcome."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = pick_request_id(request.headers.get(REQUEST_ID_HEADER))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id, method=request.method, path=request.url.path
        )

        started = time.perf_counter()
        response: Response = await call_next(request)
        logger.info(
            "http.request",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
