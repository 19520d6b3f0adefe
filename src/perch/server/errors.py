"""The default render policy.

Every error a route returns, and every panic the recover middleware
catches, is turned into a response here (or by a policy the router was
given instead). The client always gets ``{"error": message}`` and a
meaningful status; the log always gets the real error.
"""

import logging

from perch.errors import ClassifiedError
from perch.http.request import Request
from perch.http.response import ResponseWriter, respond_json

logger = logging.getLogger("perch.server")

GENERIC_MESSAGE = "internal server error"


async def render_error(w: ResponseWriter, request: Request, err: BaseException) -> None:
    """Render *err* as a JSON error body.

    Unclassified errors become ``500`` with the generic message. A
    ``ClassifiedError`` picks its own status, and its text reaches the
    client only when ``expose`` is set. Statuses outside ``100..599``
    fall back to ``500``.

    Failures while writing propagate; this function does not try to
    render its own errors.
    """
    status = 500
    message = GENERIC_MESSAGE

    if isinstance(err, ClassifiedError):
        status = err.status
        if err.expose:
            message = str(err)
        if not isinstance(status, int) or not 100 <= status <= 599:
            logger.warning("error status %r is not an HTTP status, using 500", status)
            status = 500

    logger.error(
        "%s %s failed with %d: %s",
        request.method,
        request.path,
        status,
        err,
        extra={"err": repr(err), "status": status},
    )

    await respond_json(w, status, {"error": message})
