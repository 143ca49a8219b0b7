"""Endpoint hooks: let a test take over selected requests.

A hook is a (predicate, handler) pair.  Hooks are checked in order
before the OAuth engine sees the request; the first whose predicate
matches the request runs.  Its handler either

  - returns a Response, which is sent as-is and ends the request, or
  - returns None, letting the request continue into the engine.  This is
    how an authorize hook "signs in" a user: it sets
    ``request.state.subject`` and falls through, and the engine issues the
    code for that subject.

When no predicate matches, the request goes straight to the engine.

The hook list is fetched per request from a callable, so hooks can be
installed or replaced on a running server.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from oauth_testserver.core.metrics import HOOK_CALLS

logger = logging.getLogger(__name__)

HookHandler = Callable[[Request], Awaitable[Response | None]]
HookPredicate = Callable[[Request], bool]


@dataclass(frozen=True, slots=True)
class EndpointHook:
    predicate: HookPredicate
    handler: HookHandler
    name: str = "hook"

    @staticmethod
    def for_path(
        path: str, handler: HookHandler, *, name: str | None = None
    ) -> EndpointHook:
        return EndpointHook(
            predicate=lambda request: request.url.path == path,
            handler=handler,
            name=name or path,
        )


class EndpointHookMiddleware(BaseHTTPMiddleware):
    def __init__(
        self, app: ASGIApp, hooks: Callable[[], Sequence[EndpointHook]]
    ) -> None:
        super().__init__(app)
        self._hooks = hooks

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        for hook in self._hooks():
            if not hook.predicate(request):
                continue
            request.state.hook = hook.name
            response = await hook.handler(request)
            outcome = "passed" if response is None else "answered"
            request.state.hook_outcome = outcome
            HOOK_CALLS.labels(hook=hook.name, outcome=outcome).inc()
            logger.debug(
                "hook %s %s %s %s", hook.name, outcome, request.method, request.url.path
            )
            if response is not None:
                return response
            break
        return await call_next(request)
