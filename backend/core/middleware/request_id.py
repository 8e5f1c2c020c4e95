import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from backend.core.logging import request_id_ctx_var

logger = logging.getLogger("smi")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the lifetime of each HTTP request and echo it back."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)

        response.headers[self.header_name] = rid
        logger.info(
            "request.complete",
            extra={
                "request_id": rid,
                "user_id": request.headers.get("x-user-id"),
                "path": request.url.path,
                "method": request.method,
                "status": response.status_code,
                "latency_ms": round((time.perf_counter() - start) * 1000, 1),
            },
        )
        return response
