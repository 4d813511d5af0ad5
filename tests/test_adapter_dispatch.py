# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/starbridge-python/LICENSE
# ==============================================================================

"""End-to-end request handling through :class:`StarletteAdapter`.

Requests go through the real Starlette stack via ``httpx.ASGITransport``.
"""

from __future__ import annotations

from typing import Any

import pytest

from starbridge.adapters import RequestMethod, StarletteAdapter
from starbridge.config import ApplicationOptions


pytestmark = pytest.mark.anyio


async def test_get_with_params_query_and_headers(adapter: StarletteAdapter, client_for: Any) -> None:
    async def find_one(request: Any, ctx: Any, next_: Any) -> None:
        adapter.reply(
            ctx,
            {
                "params": request.params,
                "query": request.query,
                "headers": request.header_map,
                "ip": request.client.host,
            },
        )

    adapter.get("/:id", find_one)

    async with client_for(adapter.get_instance()) as client:
        response = await client.get("/42?filter=cats", headers={"X-Test": "1"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["params"] == {"id": "42"}
    assert payload["query"] == {"filter": "cats"}
    assert payload["headers"]["x-test"] == "1"
    assert payload["ip"] == "127.0.0.1"


async def test_sync_handler_text_reply(adapter: StarletteAdapter, client_for: Any) -> None:
    adapter.post("/greet", lambda request, ctx, next_: adapter.reply(ctx, "hello", 202))

    async with client_for(adapter.get_instance()) as client:
        response = await client.post("/greet")

    assert response.status_code == 202
    assert response.text == "hello"
    assert response.headers["content-type"].startswith("text/plain")


async def test_head_is_served_by_get_registration(adapter: StarletteAdapter, client_for: Any) -> None:
    calls: list[str] = []

    def present(request: Any, ctx: Any, next_: Any) -> None:
        calls.append(request.method)
        adapter.reply(ctx, "present")

    adapter.head("/x", present)

    async with client_for(adapter.get_instance()) as client:
        head = await client.head("/x")
        get = await client.get("/x")

    assert head.status_code == 200
    assert get.text == "present"
    assert calls == ["HEAD", "GET"]


async def test_not_found_handler_replies_json(adapter: StarletteAdapter, client_for: Any) -> None:
    adapter.set_not_found_handler(lambda request, ctx: adapter.reply(ctx, {"error": "missing"}, 404))

    async with client_for(adapter.get_instance()) as client:
        response = await client.get("/nowhere")

    assert response.status_code == 404
    assert response.json() == {"error": "missing"}
    assert response.headers["content-type"] == "application/json"


async def test_verb_mismatch_runs_not_found_handler(adapter: StarletteAdapter, client_for: Any) -> None:
    adapter.get("/only-get", lambda request, ctx, next_: adapter.reply(ctx, {"ok": True}))
    adapter.set_not_found_handler(lambda request, ctx: adapter.reply(ctx, {"error": "missing"}, 404))

    async with client_for(adapter.get_instance()) as client:
        response = await client.post("/only-get")
        allowed = await client.get("/only-get")

    assert response.status_code == 404
    assert response.json() == {"error": "missing"}
    assert allowed.json() == {"ok": True}


async def test_error_handler_replies_text(adapter: StarletteAdapter, client_for: Any) -> None:
    seen: list[BaseException] = []

    async def explode(request: Any, ctx: Any, next_: Any) -> None:
        raise RuntimeError("boom")

    def on_error(exc: BaseException, request: Any, ctx: Any) -> None:
        seen.append(exc)
        adapter.reply(ctx, "failure", 500)

    adapter.get("/explode", explode)
    adapter.set_error_handler(on_error)

    async with client_for(adapter.get_instance()) as client:
        response = await client.get("/explode")

    assert response.status_code == 500
    assert response.text == "failure"
    assert response.headers["content-type"].startswith("text/plain")
    assert isinstance(seen[0], RuntimeError)


async def test_error_without_handler_uses_engine_default(adapter: StarletteAdapter, client_for: Any) -> None:
    def explode(request: Any, ctx: Any, next_: Any) -> None:
        raise RuntimeError("boom")

    adapter.get("/explode", explode)

    async with client_for(adapter.get_instance()) as client:
        response = await client.get("/explode")

    assert response.status_code == 500
    assert response.text == "Internal Server Error"


async def test_middleware_runs_before_route_and_shares_context(adapter: StarletteAdapter, client_for: Any) -> None:
    order: list[str] = []

    async def tag(request: Any, ctx: Any, next_: Any) -> None:
        order.append("middleware:before")
        adapter.set_header(ctx, "X-Middleware", "1")
        await next_()
        order.append("middleware:after")

    def hello(request: Any, ctx: Any, next_: Any) -> None:
        order.append("route")
        adapter.reply(ctx, {"hello": "world"})

    adapter.use(tag)
    adapter.get("/hello", hello)

    async with client_for(adapter.get_instance()) as client:
        response = await client.get("/hello")

    assert response.json() == {"hello": "world"}
    assert response.headers["x-middleware"] == "1"
    assert order == ["middleware:before", "route", "middleware:after"]


async def test_middleware_can_rewrite_response_after_next(adapter: StarletteAdapter, client_for: Any) -> None:
    async def wrap(request: Any, ctx: Any, next_: Any) -> None:
        await next_()
        adapter.set_header(ctx, "X-After", "1")
        adapter.reply(ctx, {"wrapped": True}, 299)

    adapter.use(wrap)
    adapter.get("/x", lambda request, ctx, next_: adapter.reply(ctx, {"inner": True}))

    async with client_for(adapter.get_instance()) as client:
        response = await client.get("/x")

    assert response.status_code == 299
    assert response.headers["x-after"] == "1"
    assert response.json() == {"wrapped": True}


async def test_middleware_status_after_next_keeps_route_body(adapter: StarletteAdapter, client_for: Any) -> None:
    async def accepted(request: Any, ctx: Any, next_: Any) -> None:
        await next_()
        adapter.status(ctx, 202)

    adapter.use(accepted)
    adapter.get("/x", lambda request, ctx, next_: adapter.reply(ctx, {"inner": True}))

    async with client_for(adapter.get_instance()) as client:
        response = await client.get("/x")

    assert response.status_code == 202
    assert response.json() == {"inner": True}


async def test_route_redirect_survives_middleware_reply(adapter: StarletteAdapter, client_for: Any) -> None:
    async def wrap(request: Any, ctx: Any, next_: Any) -> None:
        await next_()
        adapter.reply(ctx, {"wrapped": True}, 299)

    adapter.use(wrap)
    adapter.get("/old", lambda request, ctx, next_: adapter.redirect(ctx, 302, "/new"))

    async with client_for(adapter.get_instance()) as client:
        response = await client.get("/old")

    assert response.status_code == 302
    assert response.headers["location"] == "/new"


async def test_engine_not_found_survives_middleware_reply(adapter: StarletteAdapter, client_for: Any) -> None:
    async def wrap(request: Any, ctx: Any, next_: Any) -> None:
        await next_()
        adapter.reply(ctx, {"wrapped": True}, 299)

    adapter.use(wrap)

    async with client_for(adapter.get_instance()) as client:
        response = await client.get("/nowhere")

    assert response.status_code == 404


async def test_middleware_can_short_circuit(adapter: StarletteAdapter, client_for: Any) -> None:
    def guard(request: Any, ctx: Any, next_: Any) -> None:
        if request.header_map.get("authorization") != "Bearer cat":
            adapter.reply(ctx, {"error": "unauthorized"}, 401)
            return None
        return next_()

    adapter.use("/private", guard)
    adapter.get("/private", lambda request, ctx, next_: adapter.reply(ctx, "secret"))
    adapter.get("/public", lambda request, ctx, next_: adapter.reply(ctx, "open"))

    async with client_for(adapter.get_instance()) as client:
        denied = await client.get("/private")
        allowed = await client.get("/private", headers={"Authorization": "Bearer cat"})
        public = await client.get("/public")

    assert denied.status_code == 401
    assert denied.json() == {"error": "unauthorized"}
    assert allowed.text == "secret"
    assert public.text == "open"


async def test_verb_scoped_middleware(adapter: StarletteAdapter, client_for: Any) -> None:
    async def mark(request: Any, ctx: Any, next_: Any) -> None:
        adapter.set_header(ctx, "X-Posted", "yes")
        await next_()

    adapter.create_middleware_factory(RequestMethod.POST)("/cats", mark)
    adapter.get("/cats", lambda request, ctx, next_: adapter.reply(ctx, []))
    adapter.post("/cats", lambda request, ctx, next_: adapter.reply(ctx, {"id": 1}, 201))

    async with client_for(adapter.get_instance()) as client:
        listed = await client.get("/cats")
        created = await client.post("/cats")

    assert "x-posted" not in listed.headers
    assert listed.json() == []
    assert created.headers["x-posted"] == "yes"
    assert created.status_code == 201


async def test_middleware_sees_its_own_path_params(adapter: StarletteAdapter, client_for: Any) -> None:
    seen: list[dict[str, Any]] = []

    async def capture(request: Any, ctx: Any, next_: Any) -> None:
        seen.append(dict(request.params))
        await next_()

    adapter.use("/cats/:id", capture)
    adapter.get("/cats/:id", lambda request, ctx, next_: adapter.reply(ctx, request.params))

    async with client_for(adapter.get_instance()) as client:
        response = await client.get("/cats/9")

    assert seen == [{"id": "9"}]
    assert response.json() == {"id": "9"}


async def test_redirect(adapter: StarletteAdapter, client_for: Any) -> None:
    adapter.get("/old", lambda request, ctx, next_: adapter.redirect(ctx, 302, "/new"))

    async with client_for(adapter.get_instance()) as client:
        response = await client.get("/old")

    assert response.status_code == 302
    assert response.headers["location"] == "/new"


async def test_cors_passthrough(adapter: StarletteAdapter, client_for: Any) -> None:
    adapter.enable_cors({"allow_origins": ["https://example.com"], "allow_methods": ["GET"]})
    adapter.get("/cats", lambda request, ctx, next_: adapter.reply(ctx, []))

    async with client_for(adapter.get_instance()) as client:
        simple = await client.get("/cats", headers={"Origin": "https://example.com"})
        preflight = await client.options(
            "/cats",
            headers={"Origin": "https://example.com", "Access-Control-Request-Method": "GET"},
        )

    assert simple.headers["access-control-allow-origin"] == "https://example.com"
    assert preflight.status_code == 200
    assert "GET" in preflight.headers["access-control-allow-methods"]


async def test_static_assets(adapter: StarletteAdapter, client_for: Any, tmp_path: Any) -> None:
    (tmp_path / "hello.txt").write_text("meow")
    adapter.use_static_assets("/static", {"directory": str(tmp_path)})

    async with client_for(adapter.get_instance()) as client:
        found = await client.get("/static/hello.txt")
        missing = await client.get("/static/nope.txt")

    assert found.status_code == 200
    assert found.text == "meow"
    assert missing.status_code == 404


async def test_body_limit(client_for: Any) -> None:
    adapter = StarletteAdapter()
    adapter.init_http_server(ApplicationOptions(body_limit=8))
    adapter.register_parser_middleware()

    async def echo(request: Any, ctx: Any, next_: Any) -> None:
        adapter.reply(ctx, (await request.body()).decode())

    adapter.post("/echo", echo)

    async with client_for(adapter.get_instance()) as client:
        small = await client.post("/echo", content=b"tiny")
        large = await client.post("/echo", content=b"x" * 64)

    assert small.text == "tiny"
    assert large.status_code == 413
