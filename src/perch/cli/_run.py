"""``perch run`` — serve a router.

The positional argument names the router as ``module:attr``. ``attr``
may be a dotted path (``myapp.web:api.router``) and defaults to
``router``. It may also name a zero-argument factory returning one.
CLI flags override the ``ServerConfig`` defaults.
"""

import argparse
import importlib
import sys
from dataclasses import replace
from functools import reduce

from perch.config import ServerConfig
from perch.routing.router import Router

DEFAULT_ATTRIBUTE = "router"


def load_router(target: str) -> Router:
    """Import ``module:attr`` and return the ``Router`` it names.

    A callable that is not itself a router is treated as a factory and
    called once; whatever it raises propagates unchanged. Anything that
    is not a ``Router`` in the end is a ``TypeError``. A bare ASGI app is
    rejected too: ``perch run`` freezes and configures routers only.
    """
    module_name, _, attr_path = target.partition(":")
    module = importlib.import_module(module_name)
    obj = reduce(getattr, (attr_path or DEFAULT_ATTRIBUTE).split("."), module)

    if callable(obj) and not isinstance(obj, Router):
        obj = obj()

    if not isinstance(obj, Router):
        msg = f"{target!r} is a {type(obj).__name__}; perch run needs a perch.Router"
        raise TypeError(msg)
    return obj


def config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Build the server config, keeping defaults for flags that were not given."""
    overrides = {
        "host": args.host,
        "port": args.port,
        "log_level": args.log_level,
    }
    return replace(ServerConfig(), **{k: v for k, v in overrides.items() if v is not None})


def run(args: argparse.Namespace) -> None:
    """Load ``args.router`` and serve it until interrupted."""
    try:
        router = load_router(args.router)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    from perch.server.serve import run_server

    run_server(router, config_from_args(args))
