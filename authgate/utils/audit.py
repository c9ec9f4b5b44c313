import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.types import ASGIApp

logger = logging.getLogger("authgate.audit")

class AuditMiddleware(BaseHTTPMiddleware):
    """
    One log line per request under ``prefix``: client, route, status, time.

    Rejected attempts are logged at WARNING with the error code that
    ``auth_error_handler`` left on ``request.state``. Bodies and headers are
    never logged, so no password or token reaches the audit trail.
    """

    def __init__(self, app: ASGIApp, prefix: str = "/auth"):
        super().__init__(app)
        self.prefix = prefix

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.prefix):
            return await call_next(request)
        start = time.perf_counter()
        response = await call_next(request)
        dur_ms = int((time.perf_counter() - start) * 1000)
        client = request.client.host if request.client else "-"
        line = f"{client} {request.method} {request.url.path} -> {response.status_code} ({dur_ms}ms)"
        code = getattr(request.state, "auth_error", None)
        if code:
            logger.warning(f"{line} {code}")
        else:
            logger.info(line)
        return response
