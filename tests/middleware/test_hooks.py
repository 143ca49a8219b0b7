"""Endpoint hook tests.

Hooks run before the OAuth engine: a handler that returns a response
ends the request, one that returns None lets it continue into the engine.
"""

from __future__ import annotations

from fastapi.responses import PlainTextResponse
from starlette.requests import Request

from oauth_testserver.harness import OAuth2TestServer
from oauth_testserver.middleware.hooks import EndpointHook
from tests.conftest import authorize_uri, run


def test_testpath_without_hook_falls_through_to_404(server: OAuth2TestServer) -> None:
    tx = run(server.send("/testpath"))
    assert tx.status_code == 404


def test_testpath_hook_handles_the_request(server: OAuth2TestServer) -> None:
    async def hook(request: Request):
        return PlainTextResponse(f"hooked {request.method}")

    server.on_testpath_endpoint = hook
    tx = run(server.send("/testpath"))
    assert tx.status_code == 200
    assert tx.response_text == "hooked GET"


def test_testpath_hook_sees_the_posted_form(server: OAuth2TestServer) -> None:
    async def hook(request: Request):
        form = await request.form()
        return PlainTextResponse(f"{form['a']}|{request.headers['cookie']}")

    server.on_testpath_endpoint = hook
    tx = run(server.send("/testpath", cookie_header="x=1", post_body="a=%C3%A9"))
    assert tx.response_text == "é|x=1"


def test_authorize_hook_can_short_circuit(server: OAuth2TestServer) -> None:
    async def login_page(request: Request):
        return PlainTextResponse("please log in", status_code=401)

    server.on_authorize_endpoint = login_page
    tx = run(server.send(authorize_uri()))
    assert tx.status_code == 401
    assert tx.response_text == "please log in"


def test_authorize_hook_can_sign_in_and_fall_through(
    server: OAuth2TestServer,
) -> None:
    seen: list[str] = []

    async def sign_in(request: Request):
        seen.append(request.url.path)
        request.state.subject = "signed-in-user"
        return None

    server.on_authorize_endpoint = sign_in
    tx = run(server.send(authorize_uri()))
    assert tx.status_code == 302
    assert seen == ["/authorize"]
    code = tx.parse_redirect_query_string()["code"]

    serialized = server.options.authorization_code_provider.receive(code)
    assert serialized is not None
    assert '"subject":"signed-in-user"' in serialized


def test_authorize_hook_does_not_fire_on_other_paths(
    server: OAuth2TestServer,
) -> None:
    calls: list[str] = []

    async def hook(request: Request):
        calls.append(request.url.path)
        return PlainTextResponse("nope")

    server.on_authorize_endpoint = hook
    run(server.send("/token", post_body="grant_type=authorization_code"))
    assert calls == []


def test_hooks_can_be_swapped_on_a_running_server(server: OAuth2TestServer) -> None:
    async def first(request: Request):
        return PlainTextResponse("first")

    async def second(request: Request):
        return PlainTextResponse("second")

    server.on_testpath_endpoint = first
    assert run(server.send("/testpath")).response_text == "first"
    server.on_testpath_endpoint = second
    assert run(server.send("/testpath")).response_text == "second"
    server.on_testpath_endpoint = None
    assert run(server.send("/testpath")).status_code == 404


def test_extra_hooks_are_tried_in_order(server: OAuth2TestServer) -> None:
    async def a(request: Request):
        return PlainTextResponse("a")

    async def b(request: Request):
        return PlainTextResponse("b")

    server.hooks.append(
        EndpointHook(predicate=lambda r: r.url.path.startswith("/x"), handler=a)
    )
    server.hooks.append(EndpointHook.for_path("/x/y", b))
    server.hooks.append(EndpointHook.for_path("/z", b))

    assert run(server.send("/x/y")).response_text == "a"
    assert run(server.send("/z")).response_text == "b"
