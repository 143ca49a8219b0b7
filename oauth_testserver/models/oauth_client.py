from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class OAuthClient:
    client_id: str
    client_secret: str | None
    redirect_uri: str

    @property
    def is_public(self) -> bool:
        return self.client_secret is None

    @staticmethod
    def new(
        *,
        client_id: str,
        redirect_uri: str,
        client_secret: str | None = None,
    ) -> OAuthClient:
        return OAuthClient(
            client_id=client_id,
            client_secret=client_secret,
            redirect_uri=redirect_uri,
        )
