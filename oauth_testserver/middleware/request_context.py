"""Request context middleware: a request ID and one summary line per request.

Concurrent sends interleave their log lines.  The request ID lives in a
ContextVar for as long as the request is handled, so every record
emitted meanwhile is tagged with it (see core.logging), and it is echoed
back in ``X-Request-ID`` so a test can match a Transaction to its
server-side lines.

The summary line also says which client the engine authenticated and
whether an endpoint hook was involved.  Both are read from
``request.state`` after the inner layers ran: sync endpoints execute in
a worker thread on a copy of the context, so ContextVars they set are
not visible out here.
"""

from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from oauth_testserver.core.logging import client_id_var, request_id_var

logger = logging.getLogger(__name__)


def bind_client(request: Request, client_id: str) -> None:
    """Tag this request, and the log records it emits, with ``client_id``."""
    request.state.client_id = client_id
    client_id_var.set(client_id)


def _hook_label(request: Request) -> str | None:
    hook = getattr(request.state, "hook", None)
    if hook is None:
        return None
    outcome = getattr(request.state, "hook_outcome", "raised")
    return f"{hook}:{outcome}"


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request_token = request_id_var.set(req_id)
        client_token = client_id_var.set(None)
        try:
            start = time.monotonic()
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)

            client_id_var.set(getattr(request.state, "client_id", None))
            hook = _hook_label(request)
            logger.info(
                "%s %s → %d (%.1fms)%s",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                f" hook={hook}" if hook else "",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    "hook": hook,
                },
            )
        finally:
            # ASGITransport runs this in the caller's task; don't leak.
            client_id_var.reset(client_token)
            request_id_var.reset(request_token)

        response.headers["X-Request-ID"] = req_id
        return response
