"""One captured HTTP exchange, decoded the way a client would see it.

A Transaction holds the request that was sent and the response that came
back, plus fields derived from the response once, up front:

  set_cookie          the Set-Cookie value, only when exactly one is present
  cookie_name_value   set_cookie up to its first ";"
  response_text       the body as UTF-8 text
  response_element    an ElementTree element, for text/xml bodies
  response_token      a decoded JSON value, for application/json bodies

Structured decoding keys strictly on the media type of Content-Type
(parameters such as charset are ignored).  A body that does not parse as
its declared type raises ResponseDecodeError: a test should fail loudly
rather than inspect half a transaction.

LIMITATION: responses that set several cookies leave ``set_cookie`` as
None, the same as responses that set none.  Read
``response.headers.get_list("set-cookie")`` directly when a test needs
all of them.
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote, urlsplit

import httpx
from starlette.datastructures import MultiDict

from oauth_testserver.errors import ResponseDecodeError, TestAssertionError

logger = logging.getLogger(__name__)

XML_MEDIA_TYPE = "text/xml"
JSON_MEDIA_TYPE = "application/json"


def media_type(content_type: str | None) -> str | None:
    """``"application/json; charset=utf-8"`` → ``"application/json"``."""
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower() or None


def single_set_cookie(headers: httpx.Headers) -> str | None:
    values = headers.get_list("set-cookie")
    if len(values) != 1:
        if values:
            logger.debug(
                "%d Set-Cookie headers present; set_cookie left empty", len(values)
            )
        return None
    return values[0]


@dataclass(frozen=True)
class Transaction:
    request: httpx.Request
    response: httpx.Response
    set_cookie: str | None = None
    cookie_name_value: str | None = None
    response_text: str = ""
    response_element: ET.Element | None = None
    response_token: Any = None

    @classmethod
    def from_exchange(
        cls, request: httpx.Request, response: httpx.Response
    ) -> Transaction:
        """Derive every inspectable field from a completed exchange."""
        set_cookie = single_set_cookie(response.headers)
        cookie_name_value = set_cookie.split(";", 1)[0] if set_cookie else None
        text = response.content.decode("utf-8", errors="replace")

        element = None
        token = None
        kind = media_type(response.headers.get("content-type"))
        if kind == XML_MEDIA_TYPE:
            try:
                element = ET.fromstring(text)
            except ET.ParseError as e:
                raise ResponseDecodeError(kind, str(e)) from e
        elif kind == JSON_MEDIA_TYPE:
            try:
                token = json.loads(text)
            except json.JSONDecodeError as e:
                raise ResponseDecodeError(kind, str(e)) from e

        return cls(
            request=request,
            response=response,
            set_cookie=set_cookie,
            cookie_name_value=cookie_name_value,
            response_text=text,
            response_element=element,
            response_token=token,
        )

    @property
    def status_code(self) -> int:
        return self.response.status_code

    def parse_redirect_query_string(self) -> MultiDict:
        """Decode the query string of the redirect ``Location``.

        Both halves of every ``key=value`` pair are percent-decoded (``+``
        stays a literal plus).  Order and repeated keys are preserved.

        Raises TestAssertionError when the response is not a redirect, the
        Location has no query, or a pair has no ``=``.
        """
        if not self.response.is_redirect:
            raise TestAssertionError(
                f"expected a redirect, got {self.response.status_code}"
            )
        location = self.response.headers["location"]
        query = urlsplit(location).query
        if not query:
            raise TestAssertionError(f"redirect has no query string: {location!r}")

        pairs: list[tuple[str, str]] = []
        for segment in query.split("&"):
            if not segment:
                continue
            key, sep, value = segment.partition("=")
            if not sep:
                raise TestAssertionError(
                    f"malformed query segment {segment!r} in {location!r}"
                )
            pairs.append((unquote(key), unquote(value)))
        return MultiDict(pairs)
