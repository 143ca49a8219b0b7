from __future__ import annotations

import asyncio
import base64
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar
from urllib.parse import urlencode

import pytest

# Ensure repo root is on sys.path so `import oauth_testserver` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from oauth_testserver.harness import OAuth2TestServer  # noqa: E402
from oauth_testserver.services.client_validation import (  # noqa: E402
    DEFAULT_CLIENT_ID,
    DEFAULT_CLIENT_SECRET,
    DEFAULT_REDIRECT_URI,
)

T = TypeVar("T")

CLIENT_ID = DEFAULT_CLIENT_ID
CLIENT_SECRET = DEFAULT_CLIENT_SECRET
REDIRECT_URI = DEFAULT_REDIRECT_URI


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Drive one coroutine to completion from a sync test."""
    return asyncio.run(coro)


@pytest.fixture
def server() -> OAuth2TestServer:
    return OAuth2TestServer()


# ---------------------------------------------------------------------------
# Request builders
# ---------------------------------------------------------------------------


def authorize_uri(
    *,
    client_id: str = CLIENT_ID,
    redirect_uri: str | None = REDIRECT_URI,
    response_type: str | None = "code",
    state: str | None = None,
    scope: str | None = None,
    path: str = "/authorize",
) -> str:
    params = {"client_id": client_id}
    if redirect_uri is not None:
        params["redirect_uri"] = redirect_uri
    if response_type is not None:
        params["response_type"] = response_type
    if state is not None:
        params["state"] = state
    if scope is not None:
        params["scope"] = scope
    return f"https://example.com{path}?{urlencode(params)}"


def code_exchange_body(
    code: str,
    *,
    client_id: str | None = CLIENT_ID,
    client_secret: str | None = CLIENT_SECRET,
    redirect_uri: str | None = REDIRECT_URI,
) -> str:
    params = {"grant_type": "authorization_code", "code": code}
    if redirect_uri is not None:
        params["redirect_uri"] = redirect_uri
    if client_id is not None:
        params["client_id"] = client_id
    if client_secret is not None:
        params["client_secret"] = client_secret
    return urlencode(params)


def basic_auth(client_id: str, secret: str) -> str:
    raw = f"{client_id}:{secret}".encode()
    return "Basic " + base64.b64encode(raw).decode()


def obtain_code(server: OAuth2TestServer, **kwargs: Any) -> str:
    """Run the authorize step and return the issued code."""
    tx = run(server.send(authorize_uri(**kwargs)))
    assert tx.status_code == 302, tx.response_text
    return tx.parse_redirect_query_string()["code"]
