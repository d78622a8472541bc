"""
Master Web Console - Server Package
===================================
The embedded administrative web server of the storage master node.

This package provides:
- Transport sizing (acceptor threads and worker thread pool)
- A fixed route table mapping page paths to page handlers
- Page handlers exposing JSON views of the shared master state
- The server lifecycle manager (construct / start / stop)

Architecture:
    config.py    -> ServerConfig and config.yaml / .env loading
    errors.py    -> Error taxonomy raised by the lifecycle and routing
    transport.py -> Connector and thread pool sizing, worker pool
    state.py     -> Shared master-state protocol and view models
    pages.py     -> Page handlers and the static file fallback
    routes.py    -> Route table construction and resolution
    main.py      -> UIWebServer lifecycle and the ASGI dispatch chain
"""

from webui.config import ServerConfig, ConfigManager
from webui.errors import (
    WebServerError,
    PreconditionError,
    DuplicateRouteError,
    StartupError,
    InvalidStateError,
    ShutdownError,
)
from webui.main import UIWebServer, ServerState, ResolvedAddress

__all__ = [
    "ServerConfig",
    "ConfigManager",
    "WebServerError",
    "PreconditionError",
    "DuplicateRouteError",
    "StartupError",
    "InvalidStateError",
    "ShutdownError",
    "UIWebServer",
    "ServerState",
    "ResolvedAddress",
]
