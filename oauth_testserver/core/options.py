from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from oauth_testserver.core.clock import Clock, ManualClock
from oauth_testserver.repos.token_store import SingleUseReferenceStore, TokenProvider
from oauth_testserver.services.client_validation import ClientValidationProvider


@dataclass
class AuthorizationServerOptions:
    """Everything the OAuth engine reads at request time.

    Mutable until the hosting server starts, then frozen: a test that
    changes endpoint paths after routes are mounted would otherwise get
    a server that silently disagrees with its own options.
    """

    authorize_endpoint_path: str = "/authorize"
    token_endpoint_path: str = "/token"
    provider: ClientValidationProvider = field(
        default_factory=ClientValidationProvider
    )
    authorization_code_provider: TokenProvider = field(
        default_factory=SingleUseReferenceStore
    )
    # None disables the refresh_token grant.
    refresh_token_provider: TokenProvider | None = None
    clock: Clock = field(default_factory=ManualClock)
    authorization_code_expire: timedelta = timedelta(minutes=5)
    access_token_expire: timedelta = timedelta(minutes=20)
    refresh_token_expire: timedelta = timedelta(days=14)
    # Resource owner used when no hook signed anyone in for /authorize.
    default_subject: str = "test-user"
    _frozen: bool = field(default=False, init=False, repr=False, compare=False)

    def freeze(self) -> None:
        object.__setattr__(self, "_frozen", True)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_frozen", False):
            raise RuntimeError(
                f"cannot set {name!r}: options are read-only once the server started"
            )
        object.__setattr__(self, name, value)
