"""JWT access token creation and validation (ES256).

Token times come from the server's clock rather than the wall clock, so
PyJWT's own ``exp``/``iat`` checks are switched off and ``exp`` is
compared against the injected clock instead.  A test that advances a
ManualClock past ``exp`` sees the token expire without waiting.
"""

from __future__ import annotations

import uuid
from datetime import timedelta

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

from oauth_testserver.core.clock import Clock
from oauth_testserver.models.ticket import AuthenticationTicket

# ---------------------------------------------------------------------------
# Key management
# ---------------------------------------------------------------------------
# Ephemeral EC key pair generated on import; tokens do not survive the process.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "oauth-testserver"
AUDIENCE = "oauth-testserver"


def create_access_token(
    ticket: AuthenticationTicket, *, clock: Clock, lifetime: timedelta
) -> str:
    """Build and sign a JWT access token for the ticket's subject."""
    now = clock.now()
    payload = {
        "sub": ticket.subject,
        "client_id": ticket.client_id,
        "scope": ticket.scope,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str, *, clock: Clock) -> dict:
    """Verify signature and claims, return the payload.

    Pins algorithm to ES256 to prevent alg:none and alg-switching attacks.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    claims = jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={
            "require": ["sub", "exp", "iat", "jti"],
            "verify_exp": False,
            "verify_iat": False,
        },
    )
    if clock.now().timestamp() >= claims["exp"]:
        raise jwt.ExpiredSignatureError("Signature has expired")
    return claims
