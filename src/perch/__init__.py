"""Perch — method + pattern routing and middleware for ASGI.

Routes write through a response writer and return an error instead of
raising one; a single render policy turns every returned error into a
JSON body.

Basic usage::

    from perch import LoggerMiddleware, RecoverMiddleware, Router, new_error, respond_json

    router = Router()
    router.use(LoggerMiddleware, RecoverMiddleware)

    async def show_item(w, request):
        item_id = request.path_value("id")
        if item_id not in items:
            return new_error(404, "missing", expose=True)
        await respond_json(w, 200, {"id": item_id})

    router.get("/items/{id}", show_item)

Serve it with ``perch run myapp:router`` (``pip install perch[server]``).
"""

__version__ = "0.1.0"
__all__ = [
    "ClassifiedError",
    "ConfigurationError",
    "ErrorHandler",
    "Handler",
    "HTTPError",
    "LoggerMiddleware",
    "MethodNotAllowed",
    "Middleware",
    "NotFound",
    "PerchError",
    "RecoverMiddleware",
    "Request",
    "ResponseRecorder",
    "ResponseWriter",
    "Route",
    "Router",
    "ServerConfig",
    "StatusError",
    "chain",
    "new_error",
    "render_error",
    "respond",
    "respond_json",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name == "Router":
        from perch.routing.router import Router

        return Router

    if name == "ServerConfig":
        from perch.config import ServerConfig

        return ServerConfig

    if name == "Request":
        from perch.http.request import Request

        return Request

    if name in ("ResponseWriter", "respond", "respond_json"):
        from perch.http import response as _resp

        return getattr(_resp, name)

    if name in ("LoggerMiddleware", "RecoverMiddleware", "ResponseRecorder", "chain"):
        import perch.middleware as _mw

        return getattr(_mw, name)

    if name in ("ErrorHandler", "Handler", "Middleware", "Route"):
        from perch._internal import types as _types

        return getattr(_types, name)

    if name == "render_error":
        from perch.server.errors import render_error

        return render_error

    if name in (
        "ClassifiedError",
        "ConfigurationError",
        "HTTPError",
        "MethodNotAllowed",
        "NotFound",
        "PerchError",
        "StatusError",
        "new_error",
    ):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
