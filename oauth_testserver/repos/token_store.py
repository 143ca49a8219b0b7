from __future__ import annotations

import secrets
from threading import Lock
from typing import Protocol


class TokenProvider(Protocol):
    def create(self, serialized_ticket: str) -> str: ...
    def receive(self, token: str) -> str | None: ...


class SingleUseReferenceStore:
    """In-memory reference tokens that can be redeemed exactly once.

    The token handed out is a random handle; the serialized ticket stays
    server-side.  ``receive`` removes the entry in the same locked step
    that reads it, so two requests racing on one code can never both win.

    Entries that are never received stay until the process exits.
    """

    def __init__(self) -> None:
        self._by_token: dict[str, str] = {}
        self._lock = Lock()

    def create(self, serialized_ticket: str) -> str:
        # 128 random bits, hex encoded.  Collisions are not handled.
        token = secrets.token_hex(16)
        with self._lock:
            self._by_token[token] = serialized_ticket
        return token

    def receive(self, token: str) -> str | None:
        """Remove and return the ticket for ``token``, or None if absent.

        A miss is a normal outcome (unknown or already redeemed); the
        caller decides what it means for the HTTP response.
        """
        with self._lock:
            return self._by_token.pop(token, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_token)
