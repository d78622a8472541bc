"""
Master Web Console - Errors
===========================
Every failure of the server bootstrap surfaces as one of these types so
callers can branch on the kind of error:

    PreconditionError   -> bad constructor input, nothing was allocated
    DuplicateRouteError -> a path was registered twice in a route table
    StartupError        -> bind / listen / acceptor start failed
    InvalidStateError   -> lifecycle call not allowed in the current state
    ShutdownError       -> stop() did not complete

Wrapped errors are raised with ``raise ... from exc`` so the original
exception is available as ``__cause__``.
"""


class WebServerError(Exception):
    """Base class for all web console errors."""


class PreconditionError(WebServerError, ValueError):
    """A required constructor argument is missing or invalid."""


class DuplicateRouteError(WebServerError, ValueError):
    """A route path is already present in the route table."""

    def __init__(self, path: str):
        super().__init__(f"Route already registered: {path}")
        self.path = path


class StartupError(WebServerError):
    """The server could not bind or activate its transport."""


class InvalidStateError(WebServerError, RuntimeError):
    """A lifecycle transition was requested from a state that forbids it."""


class ShutdownError(WebServerError):
    """The server failed to stop cleanly and is still considered running."""
