"""
HTTP Request Logging Middleware

Logs inbound HTTP requests and their outcomes with loguru bindings: request
id, method, path, client IP, user agent, status and duration. The request id
is stored on `request.state` and echoed back in the `X-Request-ID` header.
"""
from __future__ import annotations

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger


def client_ip(request: Request, trust_forwarded: bool = False) -> str:
    """
    Resolve the client IP address from the connection scope.

    Args:
        request (Request): The incoming HTTP request.
        trust_forwarded (bool): Take the first X-Forwarded-For entry instead;
            enabled by `trust_proxy_headers` behind a reverse proxy.

    Returns:
        str: The best-effort client IP string, possibly empty.
    """
    xfwd = request.headers.get("x-forwarded-for") if trust_forwarded else None
    if xfwd:
        return xfwd.split(",")[0].strip()
    return request.client.host if request.client else ""


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs request start, completion, and unhandled exceptions."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        ctx_logger = logger.bind(
            request_id=rid,
            method=request.method,
            path=request.url.path,
            client_ip=client_ip(request),
            forwarded_for=request.headers.get("x-forwarded-for", ""),
            user_agent=request.headers.get("user-agent", ""),
        )
        request.state.request_id = rid

        start = time.perf_counter()
        ctx_logger.debug("HTTP request started")
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000.0
            ctx_logger.bind(duration_ms=round(duration_ms, 2)).exception("Unhandled exception while processing request")
            raise

        duration_ms = (time.perf_counter() - start) * 1000.0
        ctx_logger.bind(status=response.status_code, duration_ms=round(duration_ms, 2)).info("HTTP request completed")
        response.headers["X-Request-ID"] = rid
        return response
