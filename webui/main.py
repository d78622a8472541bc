"""
Master Web Console - Web Server
===============================
Bootstraps, starts and stops the embedded web server of the master node.

Responsibilities:
    - Validate constructor inputs before touching any network resource
    - Size acceptors and the worker pool from the configured thread count
    - Build the fixed route table and wire it into one ASGI dispatch chain
    - Bind the listening socket, resolving an ephemeral port when asked
    - Run N acceptor threads, each an uvicorn server with its own event
      loop, all sharing the one listening socket
    - Stop accepting, drain connections and release the port on stop()

Lifecycle:
    CREATED  --start()-->  RUNNING  --stop()-->  STOPPED

    A failed start() leaves the server CREATED, a failed stop() leaves it
    RUNNING. A stopped server cannot be started again; create a new one.

Request flow:
    acceptor thread (uvicorn) -> DispatchChain -> FastAPI catch-all route
        -> RouteTable.resolve(path) -> handler.handle(request) on WorkerPool

Usage:
    server = UIWebServer("MasterUI", ("127.0.0.1", 0), master_state, ServerConfig())
    server.start()
    print(server.address.port)   # the port the OS picked
    server.stop()
"""

import asyncio
import logging
import socket
import threading
import time
from concurrent.futures import Future
from enum import Enum
from typing import Any, Callable, NamedTuple

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import Response

from webui.config import ServerConfig
from webui.errors import InvalidStateError, PreconditionError, ShutdownError, StartupError
from webui.pages import StaticFileHandler
from webui.routes import RouteTable, build_route_table
from webui.state import MasterState
from webui.transport import WorkerPool, configure


# Listen backlog of the shared socket (same as uvicorn's default).
BACKLOG = 2048

# Seconds to wait for every acceptor to report it is serving.
STARTUP_TIMEOUT = 30.0


class ServerState(Enum):
    """Lifecycle states of UIWebServer."""
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class ResolvedAddress(NamedTuple):
    """Address the server listens on; port is the real one after start()."""
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    def url(self, path: str = "") -> str:
        """HTTP URL for path on this address, IPv6 hosts in brackets."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}{path}"


class DispatchChain:
    """
    ASGI application forwarding every call to the current handler.

    uvicorn holds on to this object for its whole life; replacing
    `app` swaps the handler for all following requests.
    """

    def __init__(self, app: Callable):
        self.app = app

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        await self.app(scope, receive, send)


def create_dispatch_app(
    route_table: RouteTable,
    submit: Callable[..., Future],
    title: str = "Master Web Console",
) -> FastAPI:
    """
    Create the FastAPI app routing every path through the route table.

    Args:
        route_table: Table resolving a path to its page handler.
        submit:      Schedules handler.handle(request) on a worker thread
                     and returns its Future.
        title:       Application title.

    Returns:
        FastAPI application with a single catch-all route.
    """
    app = FastAPI(title=title, docs_url=None, redoc_url=None, openapi_url=None)

    @app.api_route("/{path:path}", methods=["GET", "HEAD", "POST"], include_in_schema=False)
    async def dispatch(request: Request, path: str) -> Response:
        """Resolve the exact request path and run its handler on the pool."""
        handler = route_table.resolve(request.url.path)
        return await asyncio.wrap_future(submit(handler.handle, request))

    return app


class _Acceptor:
    """One uvicorn server serving the shared socket from its own thread."""

    def __init__(self, app: Callable, sock: socket.socket, name: str):
        self.sock = sock
        self.server = uvicorn.Server(uvicorn.Config(
            app,
            interface="asgi3",
            lifespan="off",
            log_config=None,
            # the lifecycle logs its own started line; keep uvicorn quiet below WARNING
            log_level="warning",
            backlog=BACKLOG,
        ))
        self.thread = threading.Thread(target=self._run, name=name, daemon=True)
        self.error: BaseException | None = None

    def _run(self) -> None:
        try:
            self.server.run(sockets=[self.sock])
        except (Exception, SystemExit) as exc:
            # uvicorn exits with SystemExit when it cannot start
            self.error = exc

    def start(self) -> None:
        self.thread.start()

    def wait_started(self, timeout: float) -> None:
        """Block until the uvicorn server is serving."""
        deadline = time.monotonic() + timeout
        while not self.server.started:
            if not self.thread.is_alive():
                raise RuntimeError(f"{self.thread.name} exited during startup") from self.error
            if time.monotonic() > deadline:
                raise TimeoutError(f"{self.thread.name} did not start within {timeout}s")
            time.sleep(0.01)

    def signal_exit(self) -> None:
        self.server.should_exit = True

    def join(self) -> None:
        self.thread.join()
        self.sock.close()


class UIWebServer:
    """
    Embedded web server of the master node.

    Owns the listening socket, the acceptor threads and the worker pool
    from start() until stop(). start() and stop() must be called from a
    single owner; they are not safe against concurrent callers.

    Attributes:
        server_name: Name used in log lines and thread names.
        route_table: The fixed page routes plus the static fallback.
        connector:   Bind host/port and acceptor count.
        thread_pool: Worker pool bounds.
        document_root: Absolute directory static assets are served from.
    """

    def __init__(
        self,
        server_name: str,
        address: tuple[str, int],
        master: MasterState,
        config: ServerConfig,
        logger: logging.Logger | None = None,
    ):
        """
        Validate inputs and wire the routes; no socket is opened here.

        Args:
            server_name: Non-empty server name.
            address:     (host, port); port 0 picks an ephemeral port on start().
            master:      Shared master state read by the page handlers.
            config:      Thread count, home directory and document root.
            logger:      Logger for lifecycle messages. Defaults to 'webui'.

        Raises:
            PreconditionError: If any argument is missing or invalid.
        """
        host, port = _check_preconditions(server_name, address, master, config)

        self.server_name = server_name
        self._log = logger or logging.getLogger("webui")
        self._address = ResolvedAddress(host, port)

        thread_count = 1 if config.thread_count is None else config.thread_count
        self.connector, self.thread_pool = configure(host, port, thread_count)

        self.document_root = config.resolve_document_root()
        self.route_table = build_route_table(master, StaticFileHandler(self.document_root))
        self._dispatch = DispatchChain(
            create_dispatch_app(self.route_table, self._submit, title=server_name)
        )

        self._state = ServerState.CREATED
        self._socket: socket.socket | None = None
        self._pool: WorkerPool | None = None
        self._acceptors: list[_Acceptor] = []

        self._log.debug(
            f"{server_name}: {self.connector.acceptors} acceptor(s), "
            f"{self.thread_pool.min_threads}-{self.thread_pool.max_threads} worker threads"
        )

    # -- Accessors -------------------------------------------------------------

    @property
    def address(self) -> ResolvedAddress:
        """Bind address; after start() with port 0 it holds the assigned port."""
        return self._address

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def worker_pool(self) -> WorkerPool | None:
        """The running worker pool, None outside start()..stop()."""
        return self._pool

    # -- Lifecycle -------------------------------------------------------------

    def set_handler(self, handler: Callable) -> None:
        """
        Replace the whole dispatch chain with an ASGI application.

        The route table is bypassed from then on.

        Raises:
            InvalidStateError: If the server is stopped.
        """
        if self._state is ServerState.STOPPED:
            raise InvalidStateError(f"{self.server_name} is stopped, cannot set handler")
        self._dispatch.app = handler

    def start(self) -> None:
        """
        Bind the socket and start the worker pool and acceptor threads.

        Raises:
            InvalidStateError: If the server is not in the CREATED state.
            StartupError:      If binding or starting the transport fails.
        """
        if self._state is not ServerState.CREATED:
            raise InvalidStateError(
                f"Cannot start {self.server_name}: server is {self._state.value}"
            )

        host, port = self.connector.host, self.connector.port
        try:
            sock = socket.create_server(
                (host, port),
                family=socket.AF_INET6 if ":" in host else socket.AF_INET,
                backlog=BACKLOG,
            )
        except OSError as e:
            raise StartupError(f"{self.server_name} could not bind {host}:{port}: {e}") from e

        pool = WorkerPool(self.thread_pool, name=f"{self.server_name}-worker")
        acceptors: list[_Acceptor] = []
        try:
            pool.start()
            self._pool = pool
            for i in range(self.connector.acceptors):
                acceptor = _Acceptor(
                    self._dispatch, sock.dup(), name=f"{self.server_name}-acceptor-{i + 1}"
                )
                acceptor.start()
                acceptors.append(acceptor)
            for acceptor in acceptors:
                acceptor.wait_started(STARTUP_TIMEOUT)
        except Exception as e:
            for acceptor in acceptors:
                acceptor.signal_exit()
            for acceptor in acceptors:
                acceptor.join()
            pool.shutdown(wait=True)
            self._pool = None
            sock.close()
            raise StartupError(f"{self.server_name} failed to start on {host}:{port}: {e}") from e

        self._socket = sock
        self._acceptors = acceptors
        if port == 0:
            self._address = ResolvedAddress(host, sock.getsockname()[1])
        self._state = ServerState.RUNNING
        self._log.info(f"{self.server_name} started @ {self._address}")

    def stop(self) -> None:
        """
        Stop accepting connections, drain the open ones and release the port.

        Draining follows uvicorn's graceful shutdown.

        Raises:
            InvalidStateError: If the server is not running.
            ShutdownError:     If an acceptor failed or the socket could not
                               be closed; the server stays RUNNING.
        """
        if self._state is not ServerState.RUNNING:
            raise InvalidStateError(
                f"Cannot stop {self.server_name}: server is {self._state.value}"
            )

        for acceptor in self._acceptors:
            acceptor.signal_exit()

        errors: list[BaseException] = []
        for acceptor in self._acceptors:
            try:
                acceptor.join()
            except OSError as e:
                errors.append(e)
            if acceptor.error is not None:
                errors.append(acceptor.error)
                # reported once; a later stop() can complete
                acceptor.error = None
        try:
            self._socket.close()
        except OSError as e:
            errors.append(e)
        self._pool.shutdown(wait=True)

        if errors:
            raise ShutdownError(f"{self.server_name} did not stop cleanly: {errors[0]}") from errors[0]

        self._pool = None
        self._state = ServerState.STOPPED
        self._log.debug(f"{self.server_name} stopped")

    # -- Internals -------------------------------------------------------------

    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        if self._pool is None:
            raise RuntimeError(f"{self.server_name} is not running")
        return self._pool.submit(fn, *args)


def _check_preconditions(
    server_name: Any, address: Any, master: Any, config: Any
) -> tuple[str, int]:
    """
    Validate UIWebServer arguments.

    Returns:
        The (host, port) pair.

    Raises:
        PreconditionError: Naming the first invalid argument.
    """
    if not isinstance(server_name, str) or not server_name.strip():
        raise PreconditionError("Server name cannot be empty")
    if address is None:
        raise PreconditionError("Server address cannot be null")
    try:
        host, port = address
    except (TypeError, ValueError):
        raise PreconditionError(f"Server address must be (host, port), got {address!r}") from None
    if not isinstance(host, str) or not host:
        raise PreconditionError("Server host cannot be empty")
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 65535:
        raise PreconditionError(f"Server port must be in 0..65535, got {port!r}")
    if master is None:
        raise PreconditionError("Master state cannot be null")
    if config is None:
        raise PreconditionError("Configuration cannot be null")
    if not isinstance(config, ServerConfig):
        raise PreconditionError(f"Configuration must be a ServerConfig, got {type(config).__name__}")
    if not isinstance(config.home_directory, str) or not config.home_directory.strip():
        raise PreconditionError("Home directory cannot be empty")
    if config.document_root is not None and (
        not isinstance(config.document_root, str) or not config.document_root.strip()
    ):
        raise PreconditionError("Document root override cannot be empty")

    thread_count = config.thread_count
    if thread_count is not None and (
        isinstance(thread_count, bool) or not isinstance(thread_count, int) or thread_count < 1
    ):
        raise PreconditionError(f"Thread count must be a positive integer, got {thread_count!r}")
    return host, port
