"""Perch exception hierarchy.

Shared across the mux, router, middleware, and render policy so every
module raises and checks the same types.
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when router setup is invalid.

    Bad patterns, duplicate registrations, and registration after the
    router started serving all end up here, at setup time.
    """


# -- Classified route errors --


@runtime_checkable
class ClassifiedError(Protocol):
    """An error that carries an HTTP status and an exposure decision.

    Anything with ``status`` and ``expose`` attributes qualifies; the
    message is ``str(err)``. Only errors with ``expose`` set have their
    message shown to the client.
    """

    @property
    def status(self) -> int: ...

    @property
    def expose(self) -> bool: ...


@dataclass(frozen=True, slots=True)
class StatusError(PerchError):
    """The stock ``ClassifiedError``.

    Routes return it to pick the response status::

        async def show(w, request):
            item = items.get(request.path_value("id"))
            if item is None:
                return new_error(404, "missing", expose=True)
            await respond_json(w, 200, item)

    ``expose`` defaults to ``False``: the client gets the generic
    message unless the route says the text is safe.
    """

    status: int
    err: BaseException | str
    expose: bool = False

    def __str__(self) -> str:
        return str(self.err)


def new_error(status: int, err: BaseException | str, expose: bool = False) -> StatusError:
    """Build a ``StatusError``.

    *status* is not validated here; the render policy falls back to 500
    for values that are not HTTP statuses.
    """
    return StatusError(status=status, err=err, expose=expose)


# -- Routing misses --


@dataclass(frozen=True, slots=True)
class HTTPError(PerchError):
    """A routing miss that maps directly to an HTTP status code.

    Raised by the mux matcher and answered by the mux itself. These
    never reach the render policy because no route ran.
    """

    status: int
    detail: str = ""
    headers: tuple[tuple[str, str], ...] = ()

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):  # noqa: N818
    """404 — no pattern matched the request path."""

    def __init__(self, detail: str = "404 page not found") -> None:
        super().__init__(status=404, detail=detail)


class MethodNotAllowed(HTTPError):  # noqa: N818
    """405 — the path matched but not for this HTTP method.

    Carries an ``Allow`` header listing the registered methods.
    """

    def __init__(self, allowed: frozenset[str], detail: str = "405 method not allowed") -> None:
        allow_value = ", ".join(sorted(allowed))
        super().__init__(
            status=405,
            detail=detail,
            headers=(("Allow", allow_value),),
        )
