import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

TRACE_ID_CTX_VAR: ContextVar[str] = ContextVar("trace_id", default="")
TRACE_HEADER = "x-trace-id"

logger = logging.getLogger("triagebot")


class TracingMiddleware(BaseHTTPMiddleware):
    """
    Give every request a trace id (reusing an inbound x-trace-id when the
    caller already has one) and expose it through a context variable so log
    lines and error envelopes can carry it.
    """
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        inbound = (request.headers.get(TRACE_HEADER) or "").strip()
        trace_id = inbound[:64] if inbound else str(uuid.uuid4())
        TRACE_ID_CTX_VAR.set(trace_id)
        request.state.trace_id = trace_id
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            logger.info({
                "function": "http_request",
                "path": str(request.url.path),
                "method": request.method,
                "elapsed_ms": elapsed_ms,
            })

        response.headers[TRACE_HEADER] = trace_id
        return response
