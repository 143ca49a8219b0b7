from __future__ import annotations

import hashlib
import logging
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Form, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel

from oauth_testserver.api.dependencies import (
    MalformedBasicCredentials,
    basic_credentials,
    get_options,
)
from oauth_testserver.core.metrics import AUTHORIZATION_CODES_ISSUED, TOKEN_REQUESTS
from oauth_testserver.core.options import AuthorizationServerOptions
from oauth_testserver.middleware.request_context import bind_client
from oauth_testserver.models.ticket import AuthenticationTicket
from oauth_testserver.services import ticket_service, token_service

# ---------------------------------------------------------------------------
# Authorization Server: OAuth 2.0 Authorization Code grant
#
# Endpoints (paths come from AuthorizationServerOptions):
#   GET  <authorize_endpoint_path>  issue authorization code, redirect to client
#   POST <token_endpoint_path>      exchange code (or refresh token) for a token
#
# Codes and refresh tokens are references into single-use stores; the
# ticket they stand for is serialized server-side and handed back exactly
# once by the store's receive().
# ---------------------------------------------------------------------------

logger = logging.getLogger(__name__)

_KNOWN_GRANTS = ("authorization_code", "refresh_token")


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    refresh_token: str | None = None


def _code_fingerprint(code: str) -> str:
    # Never log a live code; the hash prefix is enough to correlate lines.
    return hashlib.sha256(code.encode()).hexdigest()[:12]


def _oauth_error(
    error: str,
    description: str,
    *,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        {"error": error, "error_description": description},
        status_code=status_code,
        headers=headers,
    )


def _redirect_with(redirect_uri: str, params: dict[str, str]) -> RedirectResponse:
    # %20 rather than "+": clients decode the query with plain percent-decoding.
    separator = "&" if "?" in redirect_uri else "?"
    query = urlencode(params, quote_via=quote, safe="")
    return RedirectResponse(
        url=f"{redirect_uri}{separator}{query}",
        status_code=status.HTTP_302_FOUND,
    )


# ========================== GET <authorize> ==============================
# The client sends the user's browser here.  Once the client and its
# redirect URI are trusted, every outcome (including errors) is a redirect
# back to the client.


def authorize(
    request: Request,
    options: AuthorizationServerOptions = Depends(get_options),
    client_id: str | None = Query(None),
    redirect_uri: str | None = Query(None),
    response_type: str | None = Query(None),
    scope: str = Query(""),
    state: str | None = Query(None),
) -> Response:
    logger.info(
        "OAUTH [authorize] received request  client_id=%s redirect_uri=%s scope=%s",
        client_id,
        redirect_uri,
        scope,
    )

    # FAIL POINT: no client_id → nothing to validate, nowhere safe to redirect.
    if not client_id:
        logger.warning("OAUTH [authorize] FAIL: missing client_id")
        return _oauth_error("invalid_request", "client_id is required")
    bind_client(request, client_id)

    # FAIL POINT: unknown client → 400, never redirect to an unvalidated URI.
    lookup = options.provider.validate_client(client_id)
    if not lookup.accepted:
        logger.warning(
            "OAUTH [authorize] FAIL: client rejected  client_id=%s", client_id
        )
        return _oauth_error("invalid_client", "unknown client_id")

    # FAIL POINT: a supplied redirect_uri must match the registered one exactly.
    if redirect_uri is not None and redirect_uri != lookup.redirect_uri:
        logger.warning("OAUTH [authorize] FAIL: redirect_uri mismatch")
        return _oauth_error("invalid_request", "redirect_uri mismatch")
    target = redirect_uri or lookup.redirect_uri
    if not target:
        logger.warning("OAUTH [authorize] FAIL: no redirect_uri registered")
        return _oauth_error("invalid_request", "redirect_uri is required")

    # From here on the redirect URI is trusted: errors go back to the client.
    if response_type != "code":
        logger.warning(
            "OAUTH [authorize] FAIL: unsupported response_type=%s", response_type
        )
        params = {"error": "unsupported_response_type"}
        if state is not None:
            params["state"] = state
        return _redirect_with(target, params)

    # An authorize hook may have signed a user in; otherwise use the default.
    subject = getattr(request.state, "subject", None) or options.default_subject

    ticket = ticket_service.issue_ticket(
        clock=options.clock,
        lifetime=options.authorization_code_expire,
        subject=subject,
        client_id=client_id,
        redirect_uri=redirect_uri,
        scope=scope,
    )
    code = options.authorization_code_provider.create(
        ticket_service.serialize_ticket(ticket)
    )
    AUTHORIZATION_CODES_ISSUED.inc()
    logger.info(
        "OAUTH [authorize] code issued  subject=%s code=%s… expires_at=%s",
        subject,
        _code_fingerprint(code),
        ticket.expires_at.isoformat(),
    )

    params = {"code": code}
    if state is not None:
        params["state"] = state
    return _redirect_with(target, params)


# ========================== POST <token> =================================


def exchange_token(
    request: Request,
    options: AuthorizationServerOptions = Depends(get_options),
    grant_type: str | None = Form(None),
    code: str | None = Form(None),
    redirect_uri: str | None = Form(None),
    refresh_token: str | None = Form(None),
    client_id: str | None = Form(None),
    client_secret: str | None = Form(None),
) -> Response:
    grant_label = grant_type if grant_type in _KNOWN_GRANTS else "other"
    logger.info(
        "OAUTH [token] received request  grant_type=%s client_id=%s",
        grant_type,
        client_id,
    )
    # NOTE: never log client_secret, code or refresh_token values.

    def reject(error: str, description: str, **kwargs) -> JSONResponse:
        TOKEN_REQUESTS.labels(grant_type=grant_label, result=error).inc()
        logger.warning("OAUTH [token] FAIL: %s  (%s)", error, description)
        return _oauth_error(error, description, **kwargs)

    # --- Client authentication -------------------------------------------
    try:
        basic = basic_credentials(request)
    except MalformedBasicCredentials as e:
        return reject(
            "invalid_client",
            str(e),
            status_code=status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Basic"},
        )
    if basic is not None:
        if client_id is not None and client_id != basic[0]:
            return reject("invalid_request", "client_id does not match credentials")
        client_id, client_secret = basic

    if not client_id:
        return reject("invalid_client", "client authentication required")
    bind_client(request, client_id)
    lookup = options.provider.authenticate(client_id, client_secret)
    if lookup is None:
        if basic is not None:
            return reject(
                "invalid_client",
                "client authentication failed",
                status_code=status.HTTP_401_UNAUTHORIZED,
                headers={"WWW-Authenticate": "Basic"},
            )
        return reject("invalid_client", "client authentication failed")

    # --- Grant dispatch ----------------------------------------------------
    if not grant_type:
        return reject("invalid_request", "grant_type is required")

    if grant_type == "authorization_code":
        if not code:
            return reject("invalid_request", "code is required")
        # Single-use: the code is gone from the store after this call,
        # whether or not the checks below pass.
        serialized = options.authorization_code_provider.receive(code)
        if serialized is None:
            return reject("invalid_grant", "authorization code is invalid or used")
        ticket = ticket_service.deserialize_ticket(serialized)
        if ticket is None:
            return reject("invalid_grant", "authorization code is invalid or used")
        if ticket.is_expired(options.clock.now()):
            return reject("invalid_grant", "authorization code expired")
        if ticket.client_id != client_id:
            return reject("invalid_grant", "code was issued to another client")
        # redirect_uri must be repeated only if it was sent to /authorize.
        if ticket.redirect_uri is not None and ticket.redirect_uri != redirect_uri:
            return reject("invalid_grant", "redirect_uri mismatch")
        logger.info(
            "OAUTH [token] code redeemed  code=%s… subject=%s",
            _code_fingerprint(code),
            ticket.subject,
        )

    elif grant_type == "refresh_token":
        if options.refresh_token_provider is None:
            return reject("unsupported_grant_type", "refresh tokens are disabled")
        if not refresh_token:
            return reject("invalid_request", "refresh_token is required")
        serialized = options.refresh_token_provider.receive(refresh_token)
        ticket = (
            ticket_service.deserialize_ticket(serialized) if serialized else None
        )
        if ticket is None:
            return reject("invalid_grant", "refresh token is invalid or used")
        if ticket.is_expired(options.clock.now()):
            return reject("invalid_grant", "refresh token expired")
        if ticket.client_id != client_id:
            return reject("invalid_grant", "refresh token belongs to another client")
        logger.info("OAUTH [token] refresh token redeemed  subject=%s", ticket.subject)

    else:
        return reject("unsupported_grant_type", f"grant_type {grant_type!r}")

    token = _issue_token(options, ticket)
    TOKEN_REQUESTS.labels(grant_type=grant_label, result="issued").inc()
    logger.info(
        "OAUTH [token] access token issued  subject=%s expires_in=%ds",
        ticket.subject,
        token.expires_in,
    )
    return JSONResponse(
        token.model_dump(exclude_none=True),
        headers={"Cache-Control": "no-store", "Pragma": "no-cache"},
    )


def _issue_token(
    options: AuthorizationServerOptions, ticket: AuthenticationTicket
) -> Token:
    access_token = token_service.create_access_token(
        ticket, clock=options.clock, lifetime=options.access_token_expire
    )
    refresh = None
    if options.refresh_token_provider is not None:
        refresh_ticket = ticket_service.issue_ticket(
            clock=options.clock,
            lifetime=options.refresh_token_expire,
            subject=ticket.subject,
            client_id=ticket.client_id,
            redirect_uri=None,
            scope=ticket.scope,
        )
        refresh = options.refresh_token_provider.create(
            ticket_service.serialize_ticket(refresh_ticket)
        )
    return Token(
        access_token=access_token,
        expires_in=int(options.access_token_expire.total_seconds()),
        refresh_token=refresh,
    )


def build_router(options: AuthorizationServerOptions) -> APIRouter:
    """Mount the engine endpoints at the paths named in ``options``."""
    router = APIRouter(tags=["oauth"])
    router.add_api_route(
        options.authorize_endpoint_path, authorize, methods=["GET"]
    )
    router.add_api_route(
        options.token_endpoint_path, exchange_token, methods=["POST"]
    )
    return router
