"""Immutable HTTP request.

Frozen metadata with async body access. The mux hands matched handlers
a copy carrying the path parameters; everything else stays as received.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, field, replace
from typing import Any

from perch._internal.asgi import Receive, Scope
from perch.http.headers import Headers


async def _empty_receive() -> dict[str, Any]:
    return {"type": "http.request", "body": b"", "more_body": False}


@dataclass(frozen=True, slots=True)
class Request:
    """An immutable HTTP request.

    Metadata (method, path, headers, etc.) is frozen at creation.
    Body is accessed asynchronously via ``.body()``, ``.json()``, ``.text()``.
    """

    method: str
    path: str
    headers: Headers
    raw_path: bytes = b""
    query_string: bytes = b""
    path_params: dict[str, str] = field(default_factory=dict)
    http_version: str = "1.1"
    scheme: str = "http"
    server: tuple[str, int] | None = None
    client: tuple[str, int] | None = None
    root_path: str = ""

    # Private: ASGI receive callable for body streaming
    _receive: Receive = _empty_receive

    # Private: mutable cache for the body
    # (dict contents are mutable even though the field reference is frozen)
    _cache: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    # -- Computed properties --

    @property
    def is_tls(self) -> bool:
        """True when the request arrived over a TLS-terminated connection."""
        return self.scheme in ("https", "wss")

    @property
    def host(self) -> str:
        """The Host header, or the server address when it is absent."""
        host = self.headers.get("host")
        if host:
            return host
        if self.server is None:
            return ""
        name, port = self.server
        return f"{name}:{port}"

    @property
    def request_uri(self) -> str:
        """The unmodified request target: raw path plus query string."""
        path = self.raw_path.decode("latin-1") if self.raw_path else self.path
        if self.query_string:
            return f"{path}?{self.query_string.decode('latin-1')}"
        return path

    @property
    def proto(self) -> str:
        """Protocol version in request-line form, e.g. ``HTTP/1.1``."""
        return f"HTTP/{self.http_version}"

    @property
    def remote_addr(self) -> str:
        """Client ``host:port``, or an empty string when unknown."""
        if self.client is None:
            return ""
        host, port = self.client
        return f"{host}:{port}"

    @property
    def content_type(self) -> str | None:
        """The Content-Type header value."""
        return self.headers.get("content-type")

    def path_value(self, name: str) -> str:
        """Return the path parameter *name*, or ``""`` if the pattern has none."""
        return self.path_params.get(name, "")

    def with_path_params(self, params: dict[str, str]) -> Request:
        """Return a copy carrying *params*. The body cache is shared."""
        return replace(self, path_params=params)

    # -- Async body access --

    async def body(self) -> bytes:
        """Read the full request body.

        Result is cached: the ASGI receive is consumed once, then
        the same bytes are returned on subsequent calls.
        """
        if "_body" in self._cache:
            return self._cache["_body"]
        chunks = [chunk async for chunk in self.stream()]
        result = b"".join(chunks)
        self._cache["_body"] = result
        return result

    async def stream(self) -> AsyncGenerator[bytes]:
        """Stream the request body in chunks."""
        while True:
            message = await self._receive()
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                break

    async def json(self) -> Any:
        """Parse the body as JSON."""
        import json as json_module

        raw = await self.body()
        return json_module.loads(raw)

    async def text(self) -> str:
        """Read the body as text (UTF-8)."""
        raw = await self.body()
        return raw.decode("utf-8")

    # -- Factory --

    @classmethod
    def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Create a Request from an ASGI scope and receive callable."""
        server = scope.get("server")
        client = scope.get("client")
        return cls(
            method=scope["method"],
            path=scope["path"],
            headers=Headers(tuple(scope.get("headers", ()))),
            raw_path=scope.get("raw_path") or b"",
            query_string=scope.get("query_string", b""),
            http_version=scope.get("http_version", "1.1"),
            scheme=scope.get("scheme", "http"),
            server=tuple(server) if server else None,
            client=tuple(client) if client else None,
            root_path=scope.get("root_path", ""),
            _receive=receive,
        )
