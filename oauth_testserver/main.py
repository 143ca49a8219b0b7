from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from fastapi import FastAPI

from oauth_testserver.api.metrics_endpoint import router as metrics_router
from oauth_testserver.api.oauth import build_router
from oauth_testserver.core.config import SETTINGS
from oauth_testserver.core.logging import setup_logging
from oauth_testserver.core.options import AuthorizationServerOptions
from oauth_testserver.middleware.hooks import EndpointHook, EndpointHookMiddleware
from oauth_testserver.middleware.metrics import MetricsMiddleware
from oauth_testserver.middleware.request_context import RequestContextMiddleware

# Configure logging before any server is built.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


def create_app(
    options: AuthorizationServerOptions,
    hooks: Callable[[], Sequence[EndpointHook]] = tuple,
) -> FastAPI:
    """Build the ASGI app serving the OAuth engine for ``options``.

    ``hooks`` is called on every request and returns the hooks to try
    before the engine, in order.
    """
    app = FastAPI(
        title="oauth-testserver",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.oauth_options = options

    # Middleware execution order: last-added runs first (outermost layer).
    # RequestContext (outermost) → Metrics → Hooks → engine routes
    # Hooked responses still get a request ID and are still counted.
    app.add_middleware(EndpointHookMiddleware, hooks=hooks)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(metrics_router)
    app.include_router(build_router(options))

    logger.info(
        "oauth-testserver app built  authorize=%s token=%s refresh_tokens=%s",
        options.authorize_endpoint_path,
        options.token_endpoint_path,
        "on" if options.refresh_token_provider is not None else "off",
    )
    return app
