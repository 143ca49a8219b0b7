from __future__ import annotations

import base64
import binascii
import logging
from urllib.parse import unquote

from fastapi import Request

from oauth_testserver.core.options import AuthorizationServerOptions

logger = logging.getLogger(__name__)


def get_options(request: Request) -> AuthorizationServerOptions:
    """The options of the server handling this request.

    Stored on app.state by create_app, so two harnesses in one process
    never see each other's store or clock.
    """
    return request.app.state.oauth_options


class MalformedBasicCredentials(ValueError):
    pass


def basic_credentials(request: Request) -> tuple[str, str] | None:
    """Decode an ``Authorization: Basic`` header into (client_id, secret).

    Returns None when no Basic header is present.  Both halves are
    form-urlencoded before base64 encoding (RFC 6749 §2.3.1), so they are
    percent-decoded here.

    Raises MalformedBasicCredentials for a Basic header that does not decode.
    """
    header = request.headers.get("authorization")
    if not header:
        return None
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "basic":
        return None
    try:
        decoded = base64.b64decode(value.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        logger.warning("Malformed Basic credentials rejected")
        raise MalformedBasicCredentials("invalid Basic credentials") from None
    client_id, sep, secret = decoded.partition(":")
    if not sep:
        raise MalformedBasicCredentials("Basic credentials must be id:secret")
    return unquote(client_id), unquote(secret)
