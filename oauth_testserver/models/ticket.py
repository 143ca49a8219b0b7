from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

# •	subject: str          resource owner the code/token was issued for
# •	client_id: str
# •	redirect_uri: str | None   only set when the client sent one to /authorize
# •	scope: str (space-delimited)
# •	issued_at: datetime
# •	expires_at: datetime


class AuthenticationTicket(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    client_id: str
    redirect_uri: str | None = None
    scope: str = ""
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
