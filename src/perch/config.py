"""Server configuration.

ServerConfig is a frozen dataclass, immutable after creation.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """How ``run_server`` and ``perch run`` host a router. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = ServerConfig(port=3000, log_level="debug")
    """

    # Bind address
    host: str = "127.0.0.1"
    port: int = 8000

    # Logging (the access log comes from LoggerMiddleware, not the server)
    log_level: str = "info"

    # Mounting behind a proxy
    root_path: str = ""
    proxy_headers: bool = True
    forwarded_allow_ips: str = "127.0.0.1"

    # Connections
    timeout_keep_alive: int = 5

    # ASGI lifespan: "auto", "on", or "off"
    lifespan: str = "auto"
