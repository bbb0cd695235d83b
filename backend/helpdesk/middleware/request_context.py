"""
Request context middleware.

WHAT: Captures request id, client IP and user agent for every request and
exposes them through a ContextVar.

WHY: The audit trail records the network origin of every ticket, comment
and attachment change. Services should not need the Request object to get
it, so the middleware publishes it where AuditService can read it.

HOW: BaseHTTPMiddleware stores a RequestContext in request.state and in
a ContextVar that is reset when the request finishes. Each request is
logged with its status code and duration.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """
    Request-scoped data used by audit logging.

    Fields:
    - request_id: Unique identifier for log correlation
    - ip_address: Client IP (proxy-aware)
    - user_agent: Client User-Agent header
    - path: Request path
    - method: HTTP method
    """

    request_id: str
    ip_address: str
    user_agent: Optional[str]
    path: str
    method: str


_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "request_context", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """
    Get the current request context.

    Returns:
        RequestContext if within a request, None otherwise (background jobs)
    """
    return _request_context.get()


def get_client_ip(request: Request) -> str:
    """
    Extract the real client IP address from a request.

    HOW: Checks, in order:
    1. X-Real-IP
    2. X-Forwarded-For (first, leftmost hop)
    3. request.client.host

    These headers are only trustworthy behind a proxy that overwrites them.

    Args:
        request: The incoming request

    Returns:
        Client IP address as string, "unknown" if nothing is available
    """
    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip:
        return x_real_ip.strip()

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


def get_user_agent(request: Request) -> Optional[str]:
    """Return the User-Agent header, or None if absent."""
    return request.headers.get("User-Agent")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that captures and publishes request context.

    Adds an X-Request-ID header to every response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request and add context.

        Args:
            request: Incoming request
            call_next: Next middleware/handler

        Returns:
            Response with request ID header added
        """
        context = RequestContext(
            request_id=str(uuid.uuid4()),
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
            path=request.url.path,
            method=request.method,
        )
        request.state.context = context
        token = _request_context.set(context)
        started = time.monotonic()

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = context.request_id
            logger.info(
                f"{context.method} {context.path} -> {response.status_code} "
                f"({(time.monotonic() - started) * 1000:.1f}ms)",
                extra={"request_id": context.request_id, "ip_address": context.ip_address},
            )
            return response

        finally:
            _request_context.reset(token)
