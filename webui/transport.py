"""
Master Web Console - Transport Sizing
=====================================
Translates the single thread-count setting N into the transport's
concurrency parameters, and provides the worker pool those parameters size.

Sizing:
    acceptors    = N           threads multiplexing the listening socket
    min workers  = 2N + 1      one coordinator + N selectors + N acceptors
    max workers  = 2N + 100    headroom for bursts of page requests

With fewer than 2N + 1 threads the acceptors and selectors can occupy every
thread and no request would ever be executed.

Usage:
    connector, pool_spec = configure("127.0.0.1", 0, thread_count=2)
    pool = WorkerPool(pool_spec)
    pool.start()
    future = pool.submit(handler.handle, request)
"""

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Any, Callable, NamedTuple


logger = logging.getLogger(__name__)


class ConnectorSpec(NamedTuple):
    """Where to listen and how many acceptor threads share the socket."""
    host: str
    port: int
    acceptors: int


class ThreadPoolSpec(NamedTuple):
    """Bounds of the worker thread pool."""
    min_threads: int
    max_threads: int


def min_threads(thread_count: int) -> int:
    """Smallest pool that lets N acceptors and N selectors make progress."""
    return thread_count * 2 + 1


def max_threads(thread_count: int) -> int:
    """Upper bound of the pool for N acceptors."""
    return thread_count * 2 + 100


def configure(host: str, port: int, thread_count: int = 1) -> tuple[ConnectorSpec, ThreadPoolSpec]:
    """
    Compute connector and thread pool parameters for N = thread_count.

    Args:
        host:         Bind host for the connector.
        port:         Bind port; 0 asks the OS for an ephemeral port.
        thread_count: Acceptor concurrency N, at least 1.

    Returns:
        (ConnectorSpec, ThreadPoolSpec)

    Raises:
        ValueError: If thread_count is not a positive integer.
    """
    if isinstance(thread_count, bool) or not isinstance(thread_count, int) or thread_count < 1:
        raise ValueError(f"thread_count must be a positive integer, got {thread_count!r}")

    connector = ConnectorSpec(host=host, port=port, acceptors=thread_count)
    pool = ThreadPoolSpec(
        min_threads=min_threads(thread_count),
        max_threads=max_threads(thread_count),
    )
    return connector, pool


class WorkerPool:
    """
    Bounded pool of daemon threads executing page handlers.

    The pool pre-starts spec.min_threads workers and adds one more whenever
    work is queued and no worker is idle, up to spec.max_threads. Tasks
    are executed in submission order; results are delivered through
    concurrent.futures.Future so async callers can await them with
    asyncio.wrap_future().

    Attributes:
        spec: The ThreadPoolSpec bounding the pool.
        name: Thread name prefix.
    """

    def __init__(self, spec: ThreadPoolSpec, name: str = "webui-worker"):
        if spec.min_threads < 1 or spec.max_threads < spec.min_threads:
            raise ValueError(f"Invalid thread pool bounds: {spec}")
        self.spec = spec
        self.name = name

        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._workers: list[threading.Thread] = []
        self._busy = 0
        self._started = False
        self._closed = False

    @property
    def size(self) -> int:
        """Number of worker threads created so far."""
        return len(self._workers)

    @property
    def busy(self) -> int:
        """Number of workers currently executing a task."""
        return self._busy

    def start(self) -> None:
        """
        Create the minimum number of workers.

        Raises:
            RuntimeError: If the pool was already started.
        """
        with self._lock:
            if self._started:
                raise RuntimeError("Worker pool already started")
            self._started = True
            for _ in range(self.spec.min_threads):
                self._spawn()
        logger.debug(f"Worker pool started with {self.spec.min_threads}-{self.spec.max_threads} threads")

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """
        Queue fn(*args, **kwargs) for execution on a worker.

        Returns:
            Future resolved with the return value or the raised exception.

        Raises:
            RuntimeError: If the pool is not started or already shut down.
        """
        future: Future = Future()
        with self._lock:
            if not self._started or self._closed:
                raise RuntimeError("Worker pool is not accepting tasks")
            self._queue.put((future, fn, args, kwargs))
            idle = len(self._workers) - self._busy
            if self._queue.qsize() > idle and len(self._workers) < self.spec.max_threads:
                self._spawn()
        return future

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop accepting tasks and let the workers exit.

        Tasks queued before shutdown still run.

        Args:
            wait: Join the worker threads before returning.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            workers = list(self._workers)
            for _ in workers:
                self._queue.put(None)
        if wait:
            for worker in workers:
                worker.join()
        logger.debug(f"Worker pool shut down ({len(workers)} threads)")

    # -- Internals -------------------------------------------------------------

    def _spawn(self) -> None:
        """Start one worker thread. Caller holds the lock."""
        worker = threading.Thread(
            target=self._run,
            name=f"{self.name}-{len(self._workers) + 1}",
            daemon=True,
        )
        self._workers.append(worker)
        worker.start()

    def _run(self) -> None:
        """Worker loop: execute tasks until a None sentinel arrives."""
        while True:
            item = self._queue.get()
            if item is None:
                return
            future, fn, args, kwargs = item
            if not future.set_running_or_notify_cancel():
                continue

            with self._lock:
                self._busy += 1
            try:
                result = fn(*args, **kwargs)
            except BaseException as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)
            finally:
                with self._lock:
                    self._busy -= 1
