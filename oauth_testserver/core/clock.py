"""Clocks for the authorization server.

Every expiry decision the engine makes (code lifetime, access-token
``exp``) reads the time from a clock object injected through the server
options, never from ``datetime.now()`` directly.  Tests get a
``ManualClock`` they can move forward or backward, so "this code expired
five minutes ago" becomes a one-line ``clock.advance(...)`` instead of a
real ``sleep``.

Writes to a ManualClock happen from the test between requests; request
handlers only read it.  That is single-writer state, so no lock.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable


class Clock(Protocol):
    def now(self) -> datetime: ...


@runtime_checkable
class AdjustableClock(Protocol):
    def now(self) -> datetime: ...
    def advance(self, delta: timedelta) -> datetime: ...
    def set(self, moment: datetime) -> None: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


class ManualClock:
    """A clock that only moves when told to.

    Starts at the real current time (truncated to whole seconds, so JWT
    ``iat``/``exp`` claims round-trip exactly).
    """

    def __init__(self, start: datetime | None = None) -> None:
        if start is None:
            start = datetime.now(UTC).replace(microsecond=0)
        self._now = _require_aware(start)

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock by ``delta`` (negative rewinds) and return the new time."""
        self._now = self._now + delta
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = _require_aware(moment)


def _require_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        raise ValueError("clock times must be timezone-aware")
    return moment
