from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("principal_id", default=None)
logger = logging.getLogger("autoparts.request")

# Health checks and metrics scrapes are not logged.
QUIET_PATHS = frozenset({"/health", "/metrics"})


def _principal(request: Request) -> str | None:
    # Dependencies run in a copied context; request.state is shared.
    return principal_ctx_var.get() or getattr(request.state, "principal", None)


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag every request with a correlation id and log one line when it finishes.

    The id is taken from the incoming header when the caller supplies one so
    that a client retry can be traced across the invoice and payment logs.
    Ledger errors come back as 4xx responses and are logged at WARNING; a
    request that escapes every handler is logged as ``request.failed``.
    """

    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = request_id
        tokens = (request_id_ctx_var.set(request_id), principal_ctx_var.set(None))
        fields = {"request_id": request_id, "method": request.method, "path": request.url.path}
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            fields["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
            logger.exception("request.failed", extra={"extra_data": fields})
            raise
        finally:
            principal = _principal(request)
            request_id_ctx_var.reset(tokens[0])
            principal_ctx_var.reset(tokens[1])

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[self.header_name] = request_id
        response.headers.setdefault("X-Response-Time", f"{duration_ms:.2f}ms")
        if request.url.path in QUIET_PATHS:
            return response

        fields.update(status=response.status_code, duration_ms=round(duration_ms, 2))
        if principal:
            fields["principal"] = principal
        logger.log(_level_for(response.status_code), "request.completed", extra={"extra_data": fields})
        return response
