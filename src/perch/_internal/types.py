"""Shared type aliases used across perch modules."""

from collections.abc import Awaitable, Callable
from typing import TypeAlias

from perch.http.request import Request
from perch.http.response import ResponseWriter

# Terminal or wrapped request handler
Handler: TypeAlias = Callable[[ResponseWriter, Request], Awaitable[None]]

# Decorator turning one handler into another
Middleware: TypeAlias = Callable[[Handler], Handler]

# Route handler: returns an error instead of raising it
Route: TypeAlias = Callable[[ResponseWriter, Request], Awaitable[BaseException | None]]

# Render policy: turns an error into a response
ErrorHandler: TypeAlias = Callable[[ResponseWriter, Request, BaseException], Awaitable[None]]
