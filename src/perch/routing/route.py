"""Route adapter and the small frozen types the mux works with."""

from dataclasses import dataclass

from perch._internal.types import ErrorHandler, Handler, Route
from perch.context import get_error_handler
from perch.http.request import Request
from perch.http.response import ResponseWriter


@dataclass(frozen=True, slots=True)
class PathSegment:
    """A parsed segment of a route pattern.

    Static:    ``/users``        (is_param=False)
    Param:     ``/{id}``         (is_param=True, param_name="id")
    Typed:     ``/{id:int}``     (is_param=True, param_name="id", param_type="int")
    Catch-all: ``/{rest...}``    (is_param=True, param_name="rest", param_type="path")
    """

    value: str
    is_param: bool = False
    param_name: str | None = None
    param_type: str = "str"


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful mux lookup."""

    pattern: str
    handler: Handler
    path_params: dict[str, str]


class RouteHandler:
    """Adapts a ``Route`` to the ``Handler`` signature.

    A route reports failure by returning an exception. When it does, the
    render policy runs exactly once with that exception; when it returns
    ``None`` the route has already written its response and nothing else
    happens. Exceptions *raised* by the route are left to the recover
    middleware.

    The policy is *error_handler* when given, otherwise whatever the
    dispatching router bound for this request.
    """

    __slots__ = ("error_handler", "route")

    def __init__(self, route: Route, error_handler: ErrorHandler | None = None) -> None:
        self.route = route
        self.error_handler = error_handler

    async def __call__(self, w: ResponseWriter, request: Request) -> None:
        err = await self.route(w, request)
        if err is None:
            return
        render = self.error_handler or get_error_handler()
        await render(w, request, err)

    def __repr__(self) -> str:
        name = getattr(self.route, "__qualname__", repr(self.route))
        return f"RouteHandler({name})"
