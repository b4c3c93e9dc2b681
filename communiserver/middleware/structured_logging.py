# communiserver/middleware/structured_logging.py
from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger("communiserver.access")


def _principal_fields(request: Request) -> dict:
    # set by auth.get_principal; absent on public routes and failed auth
    p = getattr(request.state, "principal", None)
    if p is None:
        return {}
    return {"user_id": str(p.user_id) if p.user_id else p.email, "role": p.role}


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """One access line per request. Runs inside RequestIDMiddleware."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            extra = {
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "latency_ms": round((time.perf_counter() - started) * 1000, 1),
                **_principal_fields(request),
            }
            log.log(
                logging.ERROR if status_code >= 500 else logging.INFO,
                "%s %s %s",
                request.method,
                request.url.path,
                status_code,
                extra=extra,
            )
