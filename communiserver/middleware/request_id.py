# communiserver/middleware/request_id.py
"""
Request correlation id.

Taken from the caller's X-Request-ID when it looks sane, generated otherwise,
echoed on the response and readable from any log record emitted while the
request is being served.
"""
from __future__ import annotations

import logging
import re
import uuid
from contextvars import ContextVar, Token
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# caller-supplied ids end up verbatim in log lines
_ACCEPTABLE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

_current: ContextVar[Optional[str]] = ContextVar("communiserver_request_id", default=None)


def get_request_id() -> Optional[str]:
    return _current.get()


def bind_request_id(rid: Optional[str]) -> Token:
    return _current.set(rid)


def reset_request_id(token: Token) -> None:
    _current.reset(token)


def incoming_request_id(request: Request) -> Optional[str]:
    rid = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
    return rid if _ACCEPTABLE.match(rid) else None


class RequestIdLogFilter(logging.Filter):
    """Stamps `request_id` on records that do not carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = incoming_request_id(request) or uuid.uuid4().hex
        request.state.request_id = rid
        token = bind_request_id(rid)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
