"""In-memory response writer and request factory.

For unit-testing handlers, middleware, and render policies without
going through ASGI::

    w = Recorder()
    await render_error(w, make_request(), ValueError("boom"))
    assert w.code == 500
"""

from typing import Any

from perch.http.headers import Headers, MutableHeaders
from perch.http.request import Request


class Recorder:
    """A ``ResponseWriter`` that keeps everything in memory.

    ``code`` is the status sent (200 once anything is written without an
    explicit status, 0 if nothing happened). ``sent_headers`` is a copy
    of the headers at the moment the status went out.
    """

    __slots__ = ("body", "code", "headers", "sent_headers", "wrote_header")

    def __init__(self) -> None:
        self.headers = MutableHeaders()
        self.sent_headers: MutableHeaders | None = None
        self.code = 0
        self.body = bytearray()
        self.wrote_header = False

    async def write_header(self, status: int) -> None:
        if self.wrote_header:
            return
        self.wrote_header = True
        self.code = status
        self.sent_headers = MutableHeaders(self.headers.items())

    async def write(self, data: bytes) -> int:
        if not self.wrote_header:
            await self.write_header(200)
        self.body.extend(data)
        return len(data)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


def make_request(
    method: str = "GET",
    path: str = "/",
    *,
    headers: dict[str, str] | None = None,
    query_string: str = "",
    path_params: dict[str, str] | None = None,
    scheme: str = "http",
    body: bytes = b"",
    **kwargs: Any,
) -> Request:
    """Build a ``Request`` directly, as the router would from a scope."""
    raw_headers = tuple(
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in {"host": "example.com", **(headers or {})}.items()
    )

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(
        method=method.upper(),
        path=path,
        headers=Headers(raw_headers),
        raw_path=path.encode("latin-1"),
        query_string=query_string.encode("latin-1"),
        path_params=path_params or {},
        scheme=scheme,
        server=("example.com", 80),
        client=("192.0.2.1", 1234),
        _receive=receive,
        **kwargs,
    )
