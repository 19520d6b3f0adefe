"""Request-scoped context via ContextVar.

Provides ``error_handler_var``: the render policy of the router that is
dispatching the current request. The router sets it before running the
middleware chain and resets it afterwards, so two routers with
different policies never see each other's.

Thread safety:
    ``ContextVar`` is task-local under asyncio and thread-local under
    free-threading. No locks needed.
"""

from contextvars import ContextVar

from perch._internal.types import ErrorHandler
from perch.server.errors import render_error

error_handler_var: ContextVar[ErrorHandler] = ContextVar("perch_error_handler")
"""The active render policy. Set by ``Router.serve`` around dispatch."""


def get_error_handler() -> ErrorHandler:
    """Return the render policy bound to the current request.

    Outside a router dispatch (unit tests, handlers mounted elsewhere)
    this is ``render_error``.
    """
    return error_handler_var.get(render_error)
