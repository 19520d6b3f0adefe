"""Host a router on uvicorn.

uvicorn is an optional dependency (``pip install perch[server]``) and is
imported only when a server actually starts.
"""

import logging
from typing import Any

import anyio

from perch._internal.asgi import ASGIApp
from perch.config import ServerConfig
from perch.errors import ConfigurationError

logger = logging.getLogger("perch.server")

LOG_LEVELS = ("critical", "error", "warning", "info", "debug", "trace")


def build_uvicorn_config(app: ASGIApp, config: ServerConfig) -> dict[str, Any]:
    """Translate a ``ServerConfig`` into ``uvicorn.Config`` keyword arguments.

    uvicorn's own access log is turned off: ``LoggerMiddleware`` writes
    one record per request already.
    """
    if config.log_level not in LOG_LEVELS:
        msg = f"log_level must be one of {', '.join(LOG_LEVELS)}, got {config.log_level!r}"
        raise ConfigurationError(msg)
    if config.lifespan not in ("auto", "on", "off"):
        msg = f"lifespan must be 'auto', 'on' or 'off', got {config.lifespan!r}"
        raise ConfigurationError(msg)
    return {
        "app": app,
        "host": config.host,
        "port": config.port,
        "log_level": config.log_level,
        "access_log": False,
        "root_path": config.root_path,
        "proxy_headers": config.proxy_headers,
        "forwarded_allow_ips": config.forwarded_allow_ips,
        "timeout_keep_alive": config.timeout_keep_alive,
        "lifespan": config.lifespan,
    }


def run_server(app: ASGIApp, config: ServerConfig | None = None) -> None:
    """Serve *app* until interrupted.

    The router must be fully set up before this is called; it freezes
    during lifespan startup or on its first request.
    """
    import uvicorn

    config = config or ServerConfig()
    server = uvicorn.Server(uvicorn.Config(**build_uvicorn_config(app, config)))
    logger.info("serving on http://%s:%d", config.host, config.port)
    anyio.run(server.serve, backend="asyncio")
