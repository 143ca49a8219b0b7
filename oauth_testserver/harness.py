"""In-process OAuth2 authorization server for tests.

    server = OAuth2TestServer()
    tx = await server.send("/authorize?client_id=alpha&response_type=code")
    code = tx.parse_redirect_query_string()["code"]

The server has two states.  While ``configure`` runs it is *unstarted*:
options can be changed or replaced.  When the constructor returns it is
*started*: routes are mounted from the options and the options are
frozen.  Hooks, the client provider and the clock stay adjustable, since
they are read per request.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import httpx
from fastapi import FastAPI

from oauth_testserver.core.clock import AdjustableClock
from oauth_testserver.core.options import AuthorizationServerOptions
from oauth_testserver.main import create_app
from oauth_testserver.middleware.hooks import EndpointHook, HookHandler
from oauth_testserver.services.client_validation import ClientValidationProvider
from oauth_testserver.transaction import Transaction

logger = logging.getLogger(__name__)

BASE_URL = "http://localhost"
TESTPATH = "/testpath"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"


class OAuth2TestServer:
    def __init__(
        self, configure: Callable[[OAuth2TestServer], None] | None = None
    ) -> None:
        self._started = False
        self._options = AuthorizationServerOptions()
        self.on_authorize_endpoint: HookHandler | None = None
        self.on_testpath_endpoint: HookHandler | None = None
        # Extra hooks, tried after the two named ones.
        self.hooks: list[EndpointHook] = []

        if configure is not None:
            configure(self)

        self._options.freeze()
        self.app: FastAPI = create_app(self._options, hooks=self._active_hooks)
        self._started = True

    @property
    def started(self) -> bool:
        return self._started

    @property
    def options(self) -> AuthorizationServerOptions:
        return self._options

    @options.setter
    def options(self, value: AuthorizationServerOptions) -> None:
        if self._started:
            raise RuntimeError("cannot replace options once the server has started")
        self._options = value

    @property
    def provider(self) -> ClientValidationProvider:
        return self._options.provider

    @property
    def clock(self) -> AdjustableClock:
        """The options clock, for tests that move time.

        Raises TypeError when the configured clock cannot be moved (e.g. a
        SystemClock); read ``options.clock`` directly in that case.
        """
        clock = self._options.clock
        if not isinstance(clock, AdjustableClock):
            raise TypeError(f"{type(clock).__name__} cannot be advanced or set")
        return clock

    def _active_hooks(self) -> list[EndpointHook]:
        active: list[EndpointHook] = []
        if self.on_authorize_endpoint is not None:
            active.append(
                EndpointHook.for_path(
                    self._options.authorize_endpoint_path,
                    self.on_authorize_endpoint,
                    name="authorize",
                )
            )
        if self.on_testpath_endpoint is not None:
            active.append(
                EndpointHook.for_path(
                    TESTPATH, self.on_testpath_endpoint, name="testpath"
                )
            )
        active.extend(self.hooks)
        return active

    async def send(
        self,
        uri: str,
        cookie_header: str | None = None,
        post_body: str | None = None,
        authorization_header: str | None = None,
    ) -> Transaction:
        """Send one request to the server and return the decoded exchange.

        GET unless ``post_body`` is given, in which case it is POSTed as a
        UTF-8 form body.  ``cookie_header`` and ``authorization_header``
        are sent verbatim.  Redirects are not followed.

        Transport errors (httpx) and ResponseDecodeError propagate.
        """
        headers: dict[str, str] = {}
        if cookie_header:
            headers["Cookie"] = cookie_header
        if authorization_header:
            headers["Authorization"] = authorization_header

        method = "GET"
        content: bytes | None = None
        if post_body:
            method = "POST"
            content = post_body.encode("utf-8")
            headers["Content-Type"] = FORM_CONTENT_TYPE

        # A fresh client per send: no cookie jar or connection state
        # carries over between transactions.
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self.app),
            base_url=BASE_URL,
            follow_redirects=False,
        ) as client:
            request = client.build_request(
                method, uri, headers=headers, content=content
            )
            response = await client.send(request)

        logger.debug("%s %s → %d", method, request.url, response.status_code)
        return Transaction.from_exchange(request, response)
