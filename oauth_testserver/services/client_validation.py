"""Client validation for the authorization server.

The engine never looks clients up itself.  It asks the provider's
``validate_client`` callback, which answers with a ``ClientLookup``:
whether the client is known, its secret (``None`` for public clients)
and the one redirect URI registered for it.

The default callback consults an in-memory client repo seeded with the
test client ``alpha`` / ``beta`` / ``http://gamma.com/return``.  Tests
either register more clients on ``provider.clients`` or swap the callback
wholesale::

    server.provider.validate_client = lambda client_id: ClientLookup(...)
"""

from __future__ import annotations

import hmac
from collections.abc import Callable
from dataclasses import dataclass

from oauth_testserver.models.oauth_client import OAuthClient
from oauth_testserver.repos.oauth_client_repo import (
    InMemoryOAuthClientRepo,
    OAuthClientRepo,
)

DEFAULT_CLIENT_ID = "alpha"
DEFAULT_CLIENT_SECRET = "beta"
DEFAULT_REDIRECT_URI = "http://gamma.com/return"


@dataclass(frozen=True, slots=True)
class ClientLookup:
    accepted: bool
    client_secret: str | None = None
    redirect_uri: str | None = None

    @staticmethod
    def rejected() -> ClientLookup:
        return ClientLookup(accepted=False)


ClientValidator = Callable[[str], ClientLookup]


class ClientValidationProvider:
    def __init__(
        self,
        clients: OAuthClientRepo | None = None,
        validate_client: ClientValidator | None = None,
    ) -> None:
        if clients is None:
            seeded = InMemoryOAuthClientRepo()
            seeded.register(
                OAuthClient.new(
                    client_id=DEFAULT_CLIENT_ID,
                    client_secret=DEFAULT_CLIENT_SECRET,
                    redirect_uri=DEFAULT_REDIRECT_URI,
                )
            )
            clients = seeded
        self.clients: OAuthClientRepo = clients
        self.validate_client: ClientValidator = (
            validate_client or self._lookup_registered
        )

    def _lookup_registered(self, client_id: str) -> ClientLookup:
        client = self.clients.get(client_id)
        if client is None:
            return ClientLookup.rejected()
        return ClientLookup(
            accepted=True,
            client_secret=client.client_secret,
            redirect_uri=client.redirect_uri,
        )

    def authenticate(
        self, client_id: str, presented_secret: str | None
    ) -> ClientLookup | None:
        """Validate a client at the token endpoint.

        Returns the lookup when the client is accepted and, for confidential
        clients, the presented secret matches.  Returns None otherwise.
        """
        lookup = self.validate_client(client_id)
        if not lookup.accepted:
            return None
        if lookup.client_secret is None:
            return lookup
        if presented_secret is None:
            return None
        # Constant-time comparison; plain == leaks the secret via timing.
        if not hmac.compare_digest(
            presented_secret.encode(), lookup.client_secret.encode()
        ):
            return None
        return lookup
