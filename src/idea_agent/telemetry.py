"""HTTP request correlation for logs and metrics."""
from __future__ import annotations

import contextvars
import logging
import time
import uuid
from typing import Callable, Optional

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"

_http_request_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("idea_agent_http_request_id", default=None)


def current_http_request_id() -> Optional[str]:
    """Return the id of the HTTP request being served, if any."""

    return _http_request_id.get()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of a call, echo it back and record latency.

    Generation runs scheduled while serving a request inherit the id, so their log
    lines can be traced back to the submitting call.
    """

    def __init__(
        self,
        app: FastAPI,
        recorder: Callable[[Request, Response, float], None],
    ) -> None:
        super().__init__(app)
        self._recorder = recorder

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = _http_request_id.set(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            _http_request_id.reset(token)
        latency = time.perf_counter() - start
        response.headers[REQUEST_ID_HEADER] = request_id
        self._recorder(request, response, latency)
        logger.debug("%s %s -> %s in %.3fs", request.method, request.url.path, response.status_code, latency)
        return response
