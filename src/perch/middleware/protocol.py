"""Middleware shape and the chain builder.

A handler is any async callable::

    async def handler(w: ResponseWriter, request: Request) -> None: ...

A middleware is any callable that takes a handler and returns one::

    def with_header(next: Handler) -> Handler:
        async def handler(w, request):
            w.headers.set("X-Served-By", "perch")
            await next(w, request)
        return handler

No base class required. Classes work too: ``LoggerMiddleware`` is a
middleware because calling the class with a handler returns a handler.
"""

from collections.abc import Sequence

from perch._internal.types import Handler, Middleware


def chain(middleware: Sequence[Middleware], handler: Handler) -> Handler:
    """Wrap *handler* so the first middleware is the outermost.

    ``chain([a, b], h)`` is ``a(b(h))``: ``a`` sees the request first
    and the finished response last.
    """
    for mw in reversed(middleware):
        handler = mw(handler)
    return handler
