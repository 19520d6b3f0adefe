"""Request multiplexer with trie-based pattern matching.

Maps ``method + pattern`` to handlers, extracts path parameters, and
answers 404 / 405 on its own. The router delegates all matching here
and never looks inside.
"""

import re
from dataclasses import dataclass, field

from perch._internal.types import Handler
from perch.errors import ConfigurationError, HTTPError, MethodNotAllowed, NotFound
from perch.http.request import Request
from perch.http.response import ResponseWriter, respond
from perch.routing.params import CONVERTERS
from perch.routing.route import PathSegment, RouteMatch

_FLASK_PARAM = re.compile(r"<[^>]*>")


def parse_path(pattern: str) -> list[PathSegment]:
    """Parse a route pattern into segments.

    Examples::

        "/users"            -> [PathSegment("users")]
        "/users/{id}"       -> [PathSegment("users"), PathSegment("{id}", is_param=True, ...)]
        "/users/{id:int}"   -> [..., PathSegment("{id:int}", is_param=True, param_type="int")]
        "/files/{rest...}"  -> [..., PathSegment("{rest...}", is_param=True, param_type="path")]
    """
    if _FLASK_PARAM.search(pattern):
        msg = (
            f"Route pattern {pattern!r} uses <param> syntax. "
            "Perch patterns use {param}, e.g. '/share/{slug}'."
        )
        raise ConfigurationError(msg)

    segments: list[PathSegment] = []
    parts = [part for part in pattern.strip("/").split("/") if part]
    for i, part in enumerate(parts):
        if not (part.startswith("{") and part.endswith("}")):
            if "{" in part or "}" in part:
                msg = f"Route pattern {pattern!r}: a parameter must fill a whole segment."
                raise ConfigurationError(msg)
            segments.append(PathSegment(value=part))
            continue

        inner = part[1:-1]
        if inner.endswith("..."):
            param_name, param_type = inner[:-3], "path"
        elif ":" in inner:
            param_name, param_type = inner.split(":", 1)
        else:
            param_name, param_type = inner, "str"

        if not param_name.isidentifier():
            msg = f"Route pattern {pattern!r}: bad parameter name {param_name!r}."
            raise ConfigurationError(msg)
        if param_type not in CONVERTERS:
            msg = f"Route pattern {pattern!r}: unknown converter {param_type!r}."
            raise ConfigurationError(msg)
        if param_type == "path" and i != len(parts) - 1:
            msg = f"Route pattern {pattern!r}: a catch-all must be the last segment."
            raise ConfigurationError(msg)

        segments.append(
            PathSegment(
                value=part,
                is_param=True,
                param_name=param_name,
                param_type=param_type,
            )
        )
    return segments


def _lookup(handlers: dict[str, RouteMatch], method: str) -> RouteMatch | None:
    """Find the registration for *method*; ``GET`` also answers ``HEAD``."""
    entry = handlers.get(method)
    if entry is None and method == "HEAD":
        entry = handlers.get("GET")
    return entry


def _allowed(handlers: dict[str, RouteMatch]) -> set[str]:
    allowed = set(handlers)
    if "GET" in allowed:
        allowed.add("HEAD")
    return allowed


class _TrieNode:
    """A node in the pattern trie. Mutable during registration only."""

    __slots__ = ("catch_all", "children", "handlers", "param_children")

    def __init__(self) -> None:
        # Static segment children: "users" -> node
        self.children: dict[str, _TrieNode] = {}
        # Parameter children, tried in registration order
        self.param_children: list[_ParamEdge] = []
        # Catch-all edge (consumes the rest of the path)
        self.catch_all: _CatchAllEdge | None = None
        # Registrations at this node, keyed by HTTP method
        self.handlers: dict[str, RouteMatch] = {}


@dataclass(slots=True)
class _ParamEdge:
    """A parameter edge in the trie."""

    param_name: str
    param_type: str
    regex: re.Pattern[str]
    node: _TrieNode


@dataclass(slots=True)
class _CatchAllEdge:
    """A catch-all edge. Consumes the remaining path."""

    param_name: str
    handlers: dict[str, RouteMatch] = field(default_factory=dict)


class ServeMux:
    """Method-aware pattern multiplexer.

    Usage::

        mux = ServeMux()
        mux.add("GET", "/items/{id}", show_item)
        match = mux.match("GET", "/items/42")
        match.path_params  # {"id": "42"}

    Static segments beat parameters, parameters beat catch-alls. A path
    that matches some pattern but not for this method is a 405 with an
    ``Allow`` header; no match at all is a 404.
    """

    __slots__ = ("_patterns", "_root")

    def __init__(self) -> None:
        self._root = _TrieNode()
        self._patterns: list[tuple[str, str]] = []

    def add(self, method: str, pattern: str, handler: Handler) -> None:
        """Register *handler* at ``method + pattern``.

        Raises ``ConfigurationError`` for malformed patterns and for a
        method + pattern pair that is already registered.
        """
        method = method.upper()
        segments = parse_path(pattern)
        entry = RouteMatch(pattern=pattern, handler=handler, path_params={})
        node = self._root

        for seg in segments:
            if seg.is_param and seg.param_type == "path":
                name = seg.param_name or "path"
                if node.catch_all is None:
                    node.catch_all = _CatchAllEdge(param_name=name)
                elif node.catch_all.param_name != name:
                    msg = (
                        f"Route pattern {pattern!r}: catch-all {{{name}...}} conflicts "
                        f"with {{{node.catch_all.param_name}...}} at the same position."
                    )
                    raise ConfigurationError(msg)
                self._register(node.catch_all.handlers, method, pattern, entry)
                return

            if seg.is_param:
                node = self._param_node(node, seg)
            else:
                node = node.children.setdefault(seg.value, _TrieNode())

        self._register(node.handlers, method, pattern, entry)

    def _param_node(self, node: _TrieNode, seg: PathSegment) -> _TrieNode:
        for edge in node.param_children:
            if edge.param_name == seg.param_name and edge.param_type == seg.param_type:
                return edge.node
        edge = _ParamEdge(
            param_name=seg.param_name or "",
            param_type=seg.param_type,
            regex=re.compile(CONVERTERS[seg.param_type]),
            node=_TrieNode(),
        )
        node.param_children.append(edge)
        return edge.node

    def _register(
        self,
        handlers: dict[str, RouteMatch],
        method: str,
        pattern: str,
        entry: RouteMatch,
    ) -> None:
        existing = handlers.get(method)
        if existing is not None:
            msg = (
                f"Route {method} {pattern!r} conflicts with already registered "
                f"{method} {existing.pattern!r}."
            )
            raise ConfigurationError(msg)
        handlers[method] = entry
        self._patterns.append((method, pattern))

    @property
    def patterns(self) -> list[tuple[str, str]]:
        """Registered ``(method, pattern)`` pairs, in registration order."""
        return list(self._patterns)

    def match(self, method: str, path: str) -> RouteMatch:
        """Match a request path and method against registered patterns.

        Returns a ``RouteMatch`` carrying the extracted parameters.
        Raises ``NotFound`` if no pattern matches the path.
        Raises ``MethodNotAllowed`` if the path matches but the method doesn't.
        """
        parts = [p for p in path.strip("/").split("/") if p]
        allowed: set[str] = set()
        result = self._match_node(self._root, parts, 0, {}, method.upper(), allowed)

        if result is not None:
            entry, params = result
            return RouteMatch(pattern=entry.pattern, handler=entry.handler, path_params=params)

        if allowed:
            raise MethodNotAllowed(frozenset(allowed))
        raise NotFound

    def _match_node(
        self,
        node: _TrieNode,
        parts: list[str],
        index: int,
        params: dict[str, str],
        method: str,
        allowed: set[str],
    ) -> tuple[RouteMatch, dict[str, str]] | None:
        """Depth-first search for a registration serving *method*.

        Every path-only match adds its methods to *allowed* so the caller
        can tell a 405 from a 404.
        """
        # All parts consumed: this node is a candidate
        if index == len(parts):
            if node.handlers:
                entry = _lookup(node.handlers, method)
                if entry is not None:
                    return entry, params
                allowed.update(_allowed(node.handlers))
            # A catch-all needs at least one segment
            return None

        part = parts[index]

        # 1. Static child (exact match)
        child = node.children.get(part)
        if child is not None:
            result = self._match_node(child, parts, index + 1, params, method, allowed)
            if result is not None:
                return result

        # 2. Parameter children
        for edge in node.param_children:
            if edge.regex.fullmatch(part):
                new_params = {**params, edge.param_name: part}
                result = self._match_node(edge.node, parts, index + 1, new_params, method, allowed)
                if result is not None:
                    return result

        # 3. Catch-all
        if node.catch_all is not None:
            entry = _lookup(node.catch_all.handlers, method)
            if entry is not None:
                remaining = "/".join(parts[index:])
                return entry, {**params, node.catch_all.param_name: remaining}
            allowed.update(_allowed(node.catch_all.handlers))

        return None

    async def __call__(self, w: ResponseWriter, request: Request) -> None:
        """Dispatch *request* to its handler, or answer 404 / 405 directly."""
        try:
            match = self.match(request.method, request.path)
        except HTTPError as exc:
            await _write_miss(w, exc)
            return
        await match.handler(w, request.with_path_params(match.path_params))


async def _write_miss(w: ResponseWriter, exc: HTTPError) -> None:
    """Plain-text 404 / 405. Bypasses the render policy: no route ran."""
    for name, value in exc.headers:
        w.headers.set(name, value)
    w.headers.set("Content-Type", "text/plain; charset=utf-8")
    w.headers.set("X-Content-Type-Options", "nosniff")
    await respond(w, exc.status, f"{exc.detail}\n".encode())
