"""Tests for perch.routing.router — registration, chains, dispatch."""

import logging

import pytest

from perch import Router
from perch.errors import ConfigurationError, new_error
from perch.http.request import Request
from perch.http.response import ResponseWriter, respond, respond_json
from perch.middleware import LoggerMiddleware, RecoverMiddleware
from perch.testing import Recorder, TestClient, make_request

pytestmark = pytest.mark.anyio


async def _ok(w: ResponseWriter, request: Request) -> None:
    await respond(w, 200, b"ok")


async def _explode(w: ResponseWriter, request: Request) -> None:
    raise RuntimeError("kaboom")


def _tracing(name: str, trace: list[str]):
    """Middleware factory that records entry and exit under *name*."""

    def middleware(next):
        async def handler(w, request):
            trace.append(f"{name}:in")
            await next(w, request)
            trace.append(f"{name}:out")

        return handler

    return middleware


class TestRegistration:
    @pytest.mark.parametrize("verb", ["get", "post", "put", "patch", "delete"])
    async def test_verb_helpers(self, verb: str) -> None:
        router = Router()
        getattr(router, verb)("/things", _ok)
        async with TestClient(router) as client:
            response = await client.request(verb.upper(), "/things")
        assert response.status == 200
        assert response.text == "ok"

    async def test_handle_any_method(self) -> None:
        router = Router()
        router.handle("OPTIONS", "/things", _ok)
        async with TestClient(router) as client:
            response = await client.request("OPTIONS", "/things")
        assert response.status == 200

    async def test_route_decorator(self) -> None:
        router = Router()

        @router.route("GET", "/hello")
        async def hello(w, request):
            await respond(w, 200, b"hi")

        assert router.patterns == [("GET", "/hello")]
        async with TestClient(router) as client:
            response = await client.get("/hello")
        assert response.text == "hi"

    async def test_get_answers_head(self) -> None:
        router = Router()
        router.get("/things", _ok)
        async with TestClient(router) as client:
            response = await client.head("/things")
        assert response.status == 200

    def test_duplicate_rejected(self) -> None:
        router = Router()
        router.get("/things", _ok)
        with pytest.raises(ConfigurationError):
            router.get("/things", _ok)

    def test_bad_pattern_rejected_at_registration(self) -> None:
        router = Router()
        with pytest.raises(ConfigurationError):
            router.get("/things/<id>", _ok)


class TestFreeze:
    async def test_use_after_freeze(self) -> None:
        router = Router()
        router.freeze()
        with pytest.raises(ConfigurationError, match="after it has started"):
            router.use(LoggerMiddleware)

    async def test_handle_after_first_request(self) -> None:
        router = Router()
        router.get("/", _ok)
        async with TestClient(router) as client:
            await client.get("/")
        with pytest.raises(ConfigurationError):
            router.get("/late", _ok)

    def test_set_error_handler_after_freeze(self) -> None:
        router = Router()
        router.freeze()

        async def policy(w, request, err):
            return None

        with pytest.raises(ConfigurationError):
            router.set_error_handler(policy)

    def test_freeze_is_idempotent(self) -> None:
        router = Router()
        router.freeze()
        router.freeze()


class TestMisses:
    async def test_not_found(self) -> None:
        router = Router()
        router.get("/things", _ok)
        async with TestClient(router) as client:
            response = await client.get("/nothing")
        assert response.status == 404
        assert response.text == "404 page not found\n"
        assert response.content_type == "text/plain; charset=utf-8"

    async def test_method_not_allowed(self) -> None:
        router = Router()
        router.get("/things", _ok)
        router.put("/things", _ok)
        async with TestClient(router) as client:
            response = await client.post("/things")
        assert response.status == 405
        assert response.headers.get("allow") == "GET, HEAD, PUT"

    async def test_misses_never_reach_error_handler(self) -> None:
        calls: list[BaseException] = []

        async def policy(w, request, err):
            calls.append(err)

        router = Router(error_handler=policy)
        router.get("/things", _ok)
        async with TestClient(router) as client:
            await client.get("/nothing")
            await client.delete("/things")
        assert calls == []

    async def test_misses_pass_through_global_middleware(self) -> None:
        trace: list[str] = []
        router = Router()
        router.use(_tracing("A", trace))
        async with TestClient(router) as client:
            response = await client.get("/nothing")
        assert response.status == 404
        assert trace == ["A:in", "A:out"]


class TestMiddlewareOrder:
    async def test_global_first_registered_is_outermost(self) -> None:
        trace: list[str] = []

        async def route(w, request):
            trace.append("route")
            await respond(w, 200)

        router = Router()
        router.use(_tracing("A", trace), _tracing("B", trace))
        router.use(_tracing("C", trace))
        router.get("/", route)
        async with TestClient(router) as client:
            await client.get("/")
        assert trace == ["A:in", "B:in", "C:in", "route", "C:out", "B:out", "A:out"]

    async def test_global_wraps_per_route(self) -> None:
        trace: list[str] = []

        async def route(w, request):
            trace.append("route")
            await respond(w, 200)

        router = Router()
        router.use(_tracing("G", trace))
        router.get("/", route, _tracing("R1", trace), _tracing("R2", trace))
        async with TestClient(router) as client:
            await client.get("/")
        assert trace == ["G:in", "R1:in", "R2:in", "route", "R2:out", "R1:out", "G:out"]

    async def test_per_route_middleware_is_local(self) -> None:
        trace: list[str] = []
        router = Router()
        router.get("/a", _ok, _tracing("only-a", trace))
        router.get("/b", _ok)
        async with TestClient(router) as client:
            await client.get("/b")
            assert trace == []
            await client.get("/a")
        assert trace == ["only-a:in", "only-a:out"]

    async def test_global_middleware_registered_after_routes(self) -> None:
        trace: list[str] = []
        router = Router()
        router.get("/", _ok)
        router.use(_tracing("late", trace))
        async with TestClient(router) as client:
            await client.get("/")
        assert trace == ["late:in", "late:out"]

    async def test_middleware_can_short_circuit(self) -> None:
        def deny(next):
            async def handler(w, request):
                await respond(w, 403, b"no")

            return handler

        called: list[bool] = []

        async def route(w, request):
            called.append(True)

        router = Router()
        router.use(deny)
        router.get("/", route)
        async with TestClient(router) as client:
            response = await client.get("/")
        assert response.status == 403
        assert called == []


class TestErrorRendering:
    async def test_path_parameter_echo(self) -> None:
        async def show(w, request):
            await respond_json(w, 200, {"id": request.path_value("id")})

        router = Router()
        router.get("/items/{id}", show)
        async with TestClient(router) as client:
            response = await client.get("/items/42")
        assert response.status == 200
        assert response.body == b'{"id":"42"}'
        assert response.content_type == "application/json"

    async def test_exposed_error(self) -> None:
        async def fail(w, request):
            return new_error(404, "missing", expose=True)

        router = Router()
        router.get("/fail", fail)
        async with TestClient(router) as client:
            response = await client.get("/fail")
        assert response.status == 404
        assert response.json() == {"error": "missing"}
        assert response.starts == 1

    async def test_unexposed_error_is_generic(self) -> None:
        async def fail(w, request):
            return new_error(409, "row 17 locked by txn 88")

        router = Router()
        router.get("/fail", fail)
        async with TestClient(router) as client:
            response = await client.get("/fail")
        assert response.status == 409
        assert response.json() == {"error": "internal server error"}

    async def test_unclassified_error_is_500(self) -> None:
        async def fail(w, request):
            return ValueError("secret detail")

        router = Router()
        router.get("/fail", fail)
        async with TestClient(router) as client:
            response = await client.get("/fail")
        assert response.status == 500
        assert response.json() == {"error": "internal server error"}
        assert b"secret" not in response.body

    async def test_custom_error_handler(self) -> None:
        seen: list[BaseException] = []

        async def policy(w, request, err):
            seen.append(err)
            await respond(w, 418, b"teapot")

        async def fail(w, request):
            return ValueError("x")

        router = Router(error_handler=policy)
        router.get("/fail", fail)
        async with TestClient(router) as client:
            response = await client.get("/fail")
        assert response.status == 418
        assert len(seen) == 1
        assert str(seen[0]) == "x"

    async def test_set_error_handler(self) -> None:
        async def policy(w, request, err):
            await respond(w, 503, b"later")

        async def fail(w, request):
            return ValueError("x")

        router = Router()
        router.set_error_handler(policy)
        router.get("/fail", fail)
        assert router.error_handler is policy
        async with TestClient(router) as client:
            response = await client.get("/fail")
        assert response.status == 503

    async def test_routers_keep_their_own_policies(self) -> None:
        async def teapot(w, request, err):
            await respond(w, 418)

        async def fail(w, request):
            return ValueError("x")

        custom = Router(error_handler=teapot)
        custom.get("/fail", fail)
        default = Router()
        default.get("/fail", fail)
        async with TestClient(custom) as a, TestClient(default) as b:
            assert (await a.get("/fail")).status == 418
            assert (await b.get("/fail")).status == 500

    async def test_serve_binds_own_policy(self) -> None:
        async def teapot(w, request, err):
            await respond(w, 418)

        async def fail(w, request):
            return ValueError("x")

        router = Router(error_handler=teapot)
        router.get("/fail", fail)
        w = Recorder()
        await router.serve(w, make_request("GET", "/fail"))
        assert w.code == 418

    async def test_mounted_router_keeps_its_policy(self) -> None:
        async def teapot(w, request, err):
            await respond(w, 418)

        async def fail(w, request):
            return ValueError("x")

        inner = Router(error_handler=teapot)
        inner.get("/fail", fail)
        inner.get("/recovered", _explode, RecoverMiddleware)
        outer = Router()
        outer.get("/fail", inner.serve)
        outer.get("/recovered", inner.serve)
        outer.get("/outer", fail)
        async with TestClient(outer) as client:
            assert (await client.get("/fail")).status == 418
            assert (await client.get("/recovered")).status == 418
            response = await client.get("/outer")
        assert response.status == 500
        assert response.json() == {"error": "internal server error"}


class TestRecovery:
    async def test_panic_with_recover(self, caplog: pytest.LogCaptureFixture) -> None:
        async def explode(w, request):
            raise RuntimeError("kaboom")

        router = Router()
        router.use(LoggerMiddleware, RecoverMiddleware)
        router.get("/boom", explode)
        with caplog.at_level(logging.INFO, logger="perch"):
            async with TestClient(router) as client:
                response = await client.get("/boom")
        assert response.status == 500
        assert response.json() == {"error": "internal server error"}
        assert response.headers.get("connection") == "close"
        access = [r for r in caplog.records if r.name == "perch.access"]
        assert len(access) == 1
        assert access[0].status == 500

    async def test_recovered_panic_uses_router_policy(self) -> None:
        seen: list[BaseException] = []

        async def policy(w, request, err):
            seen.append(err)
            await respond(w, 599)

        async def explode(w, request):
            raise RuntimeError("kaboom")

        router = Router(error_handler=policy)
        router.use(RecoverMiddleware)
        router.get("/boom", explode)
        async with TestClient(router) as client:
            response = await client.get("/boom")
        assert response.status == 599
        assert len(seen) == 1
        assert getattr(seen[0], "status", None) == 500

    async def test_panic_without_recover_propagates(self) -> None:
        async def explode(w, request):
            raise RuntimeError("kaboom")

        router = Router()
        router.get("/boom", explode)
        async with TestClient(router) as client:
            with pytest.raises(RuntimeError, match="kaboom"):
                await client.get("/boom")


class TestASGI:
    async def test_lifespan(self) -> None:
        router = Router()
        messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])
        sent: list[dict] = []

        async def receive():
            return next(messages)

        async def send(message):
            sent.append(message)

        await router({"type": "lifespan"}, receive, send)
        assert [m["type"] for m in sent] == [
            "lifespan.startup.complete",
            "lifespan.shutdown.complete",
        ]
        with pytest.raises(ConfigurationError):
            router.get("/", _ok)

    async def test_websocket_scope_ignored(self) -> None:
        sent: list[dict] = []

        async def receive():
            return {"type": "websocket.connect"}

        async def send(message):
            sent.append(message)

        await Router()({"type": "websocket"}, receive, send)
        assert sent == []

    async def test_route_that_writes_nothing_gets_200(self) -> None:
        async def silent(w, request):
            return None

        router = Router()
        router.get("/", silent)
        async with TestClient(router) as client:
            response = await client.get("/")
        assert response.status == 200
        assert response.body == b""

    async def test_router_mounted_as_handler(self) -> None:
        inner = Router()
        inner.get("/", _ok)

        outer = Router()
        outer.get("/", inner.serve)
        async with TestClient(outer) as client:
            response = await client.get("/")
        assert response.text == "ok"
