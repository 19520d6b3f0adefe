"""Middleware — any callable turning a handler into a handler.

Built-in middleware:
    LoggerMiddleware -- One access-log record per request
    RecoverMiddleware -- Exceptions become a 500 through the render policy
    ResponseRecorder -- Writer wrapper that remembers the status
"""

from perch.middleware.builtin import LoggerMiddleware, RecoverMiddleware, ResponseRecorder
from perch.middleware.protocol import chain

__all__ = [
    "LoggerMiddleware",
    "RecoverMiddleware",
    "ResponseRecorder",
    "chain",
]
