"""
Request Logging Middleware
One access-log line per request, tagged with a request id that is echoed
back to the caller.
"""

import logging
import time
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Access logging.

    The caller's X-Request-ID is reused when present, otherwise one is
    generated; it is stored on `request.state.request_id` for handlers.
    Search requests also log the raw `q` parameter.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        search_query = request.query_params.get("q")
        started = time.time()

        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.time() - started) * 1000
            logger.exception(
                f"[{request_id}] {request.method} {request.url.path} raised after {elapsed_ms:.1f}ms",
                extra={"request_id": request_id, "path": request.url.path},
            )
            raise

        elapsed_ms = (time.time() - started) * 1000
        line = f"[{request_id}] {request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms"
        if search_query is not None:
            line += f" q={search_query!r}"
        log = logger.warning if response.status_code >= 500 else logger.info
        log(line, extra={"request_id": request_id, "status_code": response.status_code, "duration_ms": elapsed_ms})

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
