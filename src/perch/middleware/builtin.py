"""Built-in middleware: access logging and panic recovery.

Register the logger first so it wraps everything, including the
recover middleware, and records the status that was finally sent::

    router.use(LoggerMiddleware, RecoverMiddleware)
"""

import logging
import time

from perch._internal.types import Handler
from perch.context import get_error_handler
from perch.errors import new_error
from perch.http.headers import MutableHeaders
from perch.http.request import Request
from perch.http.response import ResponseWriter

access_logger = logging.getLogger("perch.access")
logger = logging.getLogger("perch.server")


class ResponseRecorder:
    """A ``ResponseWriter`` that remembers the status it was given.

    Everything is forwarded to the wrapped writer unchanged. ``status``
    stays ``0`` until ``write_header`` is called; a handler that only
    calls ``write`` leaves it at ``0`` even though the transport sends
    an implicit 200.
    """

    __slots__ = ("status", "writer")

    def __init__(self, writer: ResponseWriter) -> None:
        self.writer = writer
        self.status = 0

    @property
    def headers(self) -> MutableHeaders:
        return self.writer.headers

    async def write_header(self, status: int) -> None:
        self.status = status
        await self.writer.write_header(status)

    async def write(self, data: bytes) -> int:
        return await self.writer.write(data)


class LoggerMiddleware:
    """Access log: one INFO record per request on ``perch.access``.

    The record is emitted in a ``finally`` block, so it is written even
    when something downstream raised. Structured fields are attached
    as ``extra``: ``method``, ``scheme``, ``host``, ``uri``, ``proto``,
    ``remote_addr``, ``status``, ``duration`` (seconds).

    A status of ``0`` means no one called ``write_header``. If the chain
    returned, the transport sent 200 and that is what gets logged; if it
    raised, the host server answers 500 and the record says so.
    """

    __slots__ = ("next",)

    def __init__(self, next: Handler) -> None:
        self.next = next

    async def __call__(self, w: ResponseWriter, request: Request) -> None:
        start = time.perf_counter()
        recorder = ResponseRecorder(w)
        completed = False
        try:
            await self.next(recorder, request)
            completed = True
        finally:
            duration = time.perf_counter() - start
            status = recorder.status or (200 if completed else 500)
            scheme = "https" if request.is_tls else "http"
            access_logger.info(
                "%s %s://%s%s %s from %s - %d in %.3fms",
                request.method,
                scheme,
                request.host,
                request.request_uri,
                request.proto,
                request.remote_addr,
                status,
                duration * 1000,
                extra={
                    "method": request.method,
                    "scheme": scheme,
                    "host": request.host,
                    "uri": request.request_uri,
                    "proto": request.proto,
                    "remote_addr": request.remote_addr,
                    "status": status,
                    "duration": duration,
                },
            )


class RecoverMiddleware:
    """Turn an exception raised downstream into a 500 response.

    The connection is marked ``Connection: close``, the failure is logged
    with its traceback, and the active render policy answers with a
    generic, unexposed error. The exception is not re-raised.

    Cancellation derives from ``BaseException`` and passes through.
    """

    __slots__ = ("next",)

    def __init__(self, next: Handler) -> None:
        self.next = next

    async def __call__(self, w: ResponseWriter, request: Request) -> None:
        try:
            await self.next(w, request)
        except Exception as exc:
            w.headers.set("Connection", "close")
            logger.error(
                "recovering from panic in %s %s: %r",
                request.method,
                request.path,
                exc,
                exc_info=exc,
                extra={"err": repr(exc)},
            )
            render = get_error_handler()
            await render(w, request, new_error(500, "recovering from panic"))
