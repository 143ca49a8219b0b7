"""Tests for the request context middleware.

Every response gets an X-Request-ID header (generated or echoed) and every
request leaves one timing line in the log.
"""

from __future__ import annotations

import logging
import uuid

import httpx
import pytest

from oauth_testserver.harness import OAuth2TestServer
from tests.conftest import authorize_uri, run


async def _send_with_request_id(server: OAuth2TestServer, req_id: str):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=server.app), base_url="http://localhost"
    ) as client:
        return await client.get("/token", headers={"X-Request-ID": req_id})


def test_request_id_generated_when_not_provided(server: OAuth2TestServer) -> None:
    tx = run(server.send(authorize_uri()))
    req_id = tx.response.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(server: OAuth2TestServer) -> None:
    resp = run(_send_with_request_id(server, "my-custom-request-id-123"))
    assert resp.headers.get("x-request-id") == "my-custom-request-id-123"


def test_request_id_present_on_error_responses(server: OAuth2TestServer) -> None:
    tx = run(server.send("/does-not-exist"))
    assert tx.status_code == 404
    assert tx.response.headers.get("x-request-id") is not None


def test_request_summary_is_logged(
    server: OAuth2TestServer, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(
        logging.INFO, logger="oauth_testserver.middleware.request_context"
    ):
        tx = run(server.send(authorize_uri()))

    summaries = [r for r in caplog.records if getattr(r, "path", None) == "/authorize"]
    assert len(summaries) == 1
    assert summaries[0].status_code == 302
    assert summaries[0].request_id == tx.response.headers["x-request-id"]


def test_engine_records_carry_request_and_client(
    server: OAuth2TestServer, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO):
        tx = run(server.send(authorize_uri()))
    req_id = tx.response.headers["x-request-id"]

    issued = [r for r in caplog.records if "code issued" in r.getMessage()]
    assert len(issued) == 1
    assert issued[0].request_id == req_id
    assert issued[0].client_id == "alpha"


def test_summary_names_the_authenticated_client(
    server: OAuth2TestServer, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO):
        run(server.send(authorize_uri(client_id="alpha")))
        run(server.send("/does-not-exist"))

    summaries = {
        r.path: r for r in caplog.records if getattr(r, "path", None) is not None
    }
    assert summaries["/authorize"].client_id == "alpha"
    assert summaries["/does-not-exist"].client_id is None


def test_summary_records_hook_outcome(
    server: OAuth2TestServer, caplog: pytest.LogCaptureFixture
) -> None:
    async def sign_in(request):
        request.state.subject = "carol"

    server.on_authorize_endpoint = sign_in
    with caplog.at_level(logging.INFO):
        run(server.send(authorize_uri()))
        run(server.send("/token"))

    summaries = {
        r.path: r for r in caplog.records if getattr(r, "path", None) is not None
    }
    assert summaries["/authorize"].hook == "authorize:passed"
    assert "hook=authorize:passed" in summaries["/authorize"].getMessage()
    assert summaries["/token"].hook is None


def test_context_does_not_outlive_the_request(
    server: OAuth2TestServer, caplog: pytest.LogCaptureFixture
) -> None:
    async def send_then_log():
        await server.send(authorize_uri())
        logging.getLogger("tests.after").info("after send")

    with caplog.at_level(logging.INFO):
        run(send_then_log())

    (after,) = [r for r in caplog.records if r.name == "tests.after"]
    assert after.request_id is None
    assert after.client_id is None
