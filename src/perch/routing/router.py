"""The router: registration, middleware composition, ASGI entry point.

Mutable during setup (``use``, ``handle``, the verb helpers). Frozen on
the first request, after which it is read-only and needs no locking.
"""

import logging
import threading
from collections.abc import Callable

from perch._internal.asgi import Receive, Scope, Send
from perch._internal.types import ErrorHandler, Handler, Middleware, Route
from perch.context import error_handler_var
from perch.errors import ConfigurationError
from perch.http.request import Request
from perch.http.response import ASGIResponseWriter, ResponseWriter
from perch.middleware.protocol import chain
from perch.routing.mux import ServeMux
from perch.routing.route import RouteHandler
from perch.server.errors import render_error

logger = logging.getLogger("perch.server")


class Router:
    """Method + pattern routing with router-wide and per-route middleware.

    Usage::

        router = Router()
        router.use(LoggerMiddleware, RecoverMiddleware)

        async def show_item(w, request):
            await respond_json(w, 200, {"id": request.path_value("id")})

        router.get("/items/{id}", show_item)

    Composition is fixed: router-wide middleware wraps per-route
    middleware, which wraps the route. Within each list the first
    registered is the outermost::

        global[0](global[1](... route_mw[0](route_mw[1](... route))))

    Thread safety:
        Registration is single-threaded setup, finished before serving.
        The freeze transition uses a Lock + double-check so exactly one
        thread folds the middleware chain; after that every access is a
        read.
    """

    __slots__ = (
        "_error_handler",
        "_freeze_lock",
        "_frozen",
        "_handler",
        "_middleware",
        "_mux",
    )

    def __init__(self, *, error_handler: ErrorHandler | None = None) -> None:
        self._mux = ServeMux()
        self._middleware: list[Middleware] = []
        self._error_handler: ErrorHandler = error_handler or render_error
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()
        # Compiled state, set by freeze()
        self._handler: Handler | None = None

    # -- Setup --

    def use(self, *middleware: Middleware) -> None:
        """Append router-wide middleware. Runs around every request."""
        self._check_not_frozen()
        self._middleware.extend(middleware)

    def handle(self, method: str, pattern: str, route: Route, *middleware: Middleware) -> None:
        """Register *route* at ``method + pattern`` behind *middleware*.

        The per-route chain is folded here, once; only the router-wide
        chain is applied at freeze time.
        """
        self._check_not_frozen()
        handler = chain(middleware, RouteHandler(route))
        self._mux.add(method, pattern, handler)

    def get(self, pattern: str, route: Route, *middleware: Middleware) -> None:
        self.handle("GET", pattern, route, *middleware)

    def post(self, pattern: str, route: Route, *middleware: Middleware) -> None:
        self.handle("POST", pattern, route, *middleware)

    def put(self, pattern: str, route: Route, *middleware: Middleware) -> None:
        self.handle("PUT", pattern, route, *middleware)

    def patch(self, pattern: str, route: Route, *middleware: Middleware) -> None:
        self.handle("PATCH", pattern, route, *middleware)

    def delete(self, pattern: str, route: Route, *middleware: Middleware) -> None:
        self.handle("DELETE", pattern, route, *middleware)

    def route(
        self,
        method: str,
        pattern: str,
        *middleware: Middleware,
    ) -> Callable[[Route], Route]:
        """Register a route via decorator::

            @router.route("GET", "/items/{id}")
            async def show_item(w, request): ...
        """

        def decorator(func: Route) -> Route:
            self.handle(method, pattern, func, *middleware)
            return func

        return decorator

    @property
    def error_handler(self) -> ErrorHandler:
        """The render policy for errors returned by routes and recovered panics."""
        return self._error_handler

    def set_error_handler(self, error_handler: ErrorHandler) -> None:
        """Replace the render policy. Only allowed before the router serves."""
        self._check_not_frozen()
        self._error_handler = error_handler

    @property
    def patterns(self) -> list[tuple[str, str]]:
        """Registered ``(method, pattern)`` pairs."""
        return self._mux.patterns

    # -- Dispatch --

    async def serve(self, w: ResponseWriter, request: Request) -> None:
        """Run *request* through the router-wide chain and the mux.

        This is the ``Handler`` form of the router, so a router can be
        mounted wherever a handler is expected. The router's render policy
        is bound for the duration of the call; a mounted router's policy
        wins over the one it is mounted in.
        """
        self.freeze()
        assert self._handler is not None
        token = error_handler_var.set(self._error_handler)
        try:
            await self._handler(w, request)
        finally:
            error_handler_var.reset(token)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        request = Request.from_asgi(scope, receive)
        writer = ASGIResponseWriter(send)
        await self.serve(writer, request)
        await writer.finish()

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Answer the ASGI lifespan protocol. Startup freezes the router."""
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    self.freeze()
                except Exception as exc:
                    logger.exception("router failed to start")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    # -- Internal --

    def freeze(self) -> None:
        """Fold the router-wide chain and stop accepting registrations.

        Called implicitly by the first request. Idempotent and
        thread-safe.
        """
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._handler = chain(tuple(self._middleware), self._mux)
            self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = "Cannot modify the router after it has started serving requests."
            raise ConfigurationError(msg)
