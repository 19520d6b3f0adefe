"""Response writing.

Handlers never build response objects. They receive a ``ResponseWriter``
and emit the status line, headers, and body through it, the same way
the transport will see them. ``ASGIResponseWriter`` is the writer the
router hands out; middleware may wrap it.
"""

import json as json_module
import logging
from typing import Any, Protocol

from perch._internal.asgi import Send
from perch.http.headers import MutableHeaders

logger = logging.getLogger("perch.server")


class ResponseWriter(Protocol):
    """What a handler can do to the response.

    Header edits take effect until the first ``write_header`` (or the
    first ``write``, which implies status 200). After that the status
    line and headers are on the wire.
    """

    @property
    def headers(self) -> MutableHeaders: ...

    async def write_header(self, status: int) -> None: ...

    async def write(self, data: bytes) -> int: ...


def _check_status(status: int) -> None:
    if not 100 <= status <= 999:
        msg = f"invalid write_header status {status}"
        raise ValueError(msg)


class ASGIResponseWriter:
    """``ResponseWriter`` backed by an ASGI ``send`` callable.

    Body chunks go out as they are written (``more_body=True``); the
    router calls ``finish()`` once the handler chain returns.
    """

    __slots__ = ("_finished", "_headers", "_send", "_started", "status")

    def __init__(self, send: Send) -> None:
        self._send = send
        self._headers = MutableHeaders()
        self._started = False
        self._finished = False
        self.status = 0

    @property
    def headers(self) -> MutableHeaders:
        return self._headers

    @property
    def started(self) -> bool:
        """True once the status line has been sent."""
        return self._started

    async def write_header(self, status: int) -> None:
        _check_status(status)
        if self._started:
            logger.warning(
                "superfluous write_header call (status %d, already sent %d)",
                status,
                self.status,
            )
            return
        self._started = True
        self.status = status
        await self._send(
            {
                "type": "http.response.start",
                "status": status,
                "headers": self._headers.raw(),
            }
        )

    async def write(self, data: bytes) -> int:
        if not self._started:
            await self.write_header(200)
        if not data:
            return 0
        await self._send({"type": "http.response.body", "body": data, "more_body": True})
        return len(data)

    async def finish(self) -> None:
        """Close the response, sending an implicit 200 if nothing was written."""
        if self._finished:
            return
        if not self._started:
            await self.write_header(200)
        self._finished = True
        await self._send({"type": "http.response.body", "body": b"", "more_body": False})


async def respond(w: ResponseWriter, status: int, payload: bytes | None = None) -> None:
    """Write *status* and then *payload*, if there is one."""
    await w.write_header(status)
    if payload:
        await w.write(payload)


def encode_json(value: Any) -> bytes:
    """Compact JSON: no spaces after separators, UTF-8, no trailing newline.

    Raises ``TypeError`` or ``ValueError`` when *value* cannot be encoded.
    """
    text = json_module.dumps(
        value,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


async def respond_json(w: ResponseWriter, status: int, value: Any) -> None:
    """Encode *value* as JSON and write it with *status*.

    Encoding happens before anything is written, so a failure leaves the
    response untouched and propagates to the caller.
    """
    body = encode_json(value)
    w.headers.set("Content-Type", "application/json")
    await respond(w, status, body)
