"""
Master Web Console - Route Table
================================
Maps exact URL paths to page handlers, with a fallback for every other path.

The table is filled once while the server is constructed and only read
afterwards, so concurrent resolve() calls need no locking.

Usage:
    table = build_route_table(master_state, StaticFileHandler(document_root))
    handler = table.resolve("/workers")    # WorkersPage
    handler = table.resolve("/style.css")  # the fallback
"""

from dataclasses import dataclass
from typing import Iterator

from webui.errors import DuplicateRouteError
from webui.pages import PAGE_HANDLERS, PageHandler
from webui.state import MasterState


# The fixed console pages, in registration order.
PAGE_ROUTES: tuple[str, ...] = tuple(PAGE_HANDLERS)


@dataclass(frozen=True)
class RouteEntry:
    """A registered path and the handler answering it."""
    path: str
    handler: PageHandler


class RouteTable:
    """
    Exact-path route table with a fallback handler.

    Attributes:
        fallback: Handler returned for paths without an entry.
    """

    def __init__(self, fallback: PageHandler):
        self.fallback = fallback
        self._routes: dict[str, RouteEntry] = {}

    def register(self, path: str, handler: PageHandler) -> RouteEntry:
        """
        Add a route.

        Args:
            path:    Exact, case-sensitive URL path.
            handler: Handler for requests to that path.

        Returns:
            The created RouteEntry.

        Raises:
            DuplicateRouteError: If the path is already registered.
        """
        if path in self._routes:
            raise DuplicateRouteError(path)
        entry = RouteEntry(path=path, handler=handler)
        self._routes[path] = entry
        return entry

    def resolve(self, path: str) -> PageHandler:
        """Return the handler registered for path, or the fallback."""
        entry = self._routes.get(path)
        return entry.handler if entry is not None else self.fallback

    def entries(self) -> list[RouteEntry]:
        """Registered routes in insertion order."""
        return list(self._routes.values())

    def paths(self) -> list[str]:
        return list(self._routes)

    def __contains__(self, path: object) -> bool:
        return path in self._routes

    def __len__(self) -> int:
        return len(self._routes)

    def __iter__(self) -> Iterator[RouteEntry]:
        return iter(self.entries())


def build_route_table(master: MasterState, fallback: PageHandler) -> RouteTable:
    """
    Create the console's route table.

    Every fixed page path gets its own handler instance, each built with
    the same shared master state.

    Args:
        master:   Shared master-state handle read by the pages.
        fallback: Handler for every other path.

    Returns:
        RouteTable with the seven console pages registered.
    """
    table = RouteTable(fallback)
    for path, page_class in PAGE_HANDLERS.items():
        table.register(path, page_class(master))
    return table
