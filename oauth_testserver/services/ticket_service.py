"""Authentication ticket serialization.

The single-use store only ever sees opaque strings.  These helpers turn
a ticket into that string and back, so the store stays ignorant of what
it holds and any payload shape can be swapped in later.
"""

from __future__ import annotations

from datetime import timedelta

from pydantic import ValidationError

from oauth_testserver.core.clock import Clock
from oauth_testserver.models.ticket import AuthenticationTicket


def issue_ticket(
    *,
    clock: Clock,
    lifetime: timedelta,
    subject: str,
    client_id: str,
    redirect_uri: str | None,
    scope: str,
) -> AuthenticationTicket:
    issued_at = clock.now()
    return AuthenticationTicket(
        subject=subject,
        client_id=client_id,
        redirect_uri=redirect_uri,
        scope=scope,
        issued_at=issued_at,
        expires_at=issued_at + lifetime,
    )


def serialize_ticket(ticket: AuthenticationTicket) -> str:
    return ticket.model_dump_json()


def deserialize_ticket(serialized: str) -> AuthenticationTicket | None:
    # A payload that no longer parses is treated like a missing one.
    try:
        return AuthenticationTicket.model_validate_json(serialized)
    except ValidationError:
        return None
