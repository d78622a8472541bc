"""
Master Web Console - Page Handlers
==================================
One handler per console page. Every handler is built with the shared
master-state handle and answers a request synchronously on a worker
thread:

    /home          -> GeneralPage        master overview
    /workers       -> WorkersPage        live workers
    /configuration -> ConfigurationPage  master configuration
    /browse        -> BrowsePage         namespace browser (?path=)
    /memory        -> MemoryPage         files fully held in memory
    /dependency    -> DependencyPage     lineage dependencies (?id=)
    /download      -> DownloadPage       file content (?path=)

Any other path is answered by StaticFileHandler, which serves files from the
document root and answers 404 for everything else.

Pages return JSON; rendering HTML from it is left to the static assets.
"""

import os
import time
from typing import Any, Protocol, runtime_checkable

from fastapi import Request
from fastapi.responses import FileResponse, JSONResponse, Response

from webui.state import FileInfo, MasterState


@runtime_checkable
class PageHandler(Protocol):
    """Anything that turns a request into a response."""

    def handle(self, request: Request) -> Response: ...


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _file_entry(info: FileInfo) -> dict[str, Any]:
    """Serialize a FileInfo with its display name."""
    entry = info.model_dump()
    entry["name"] = info.name
    return entry


class MasterPage:
    """Base for pages reading from the shared master state."""

    def __init__(self, master: MasterState):
        self.master = master

    def handle(self, request: Request) -> Response:
        raise NotImplementedError


class GeneralPage(MasterPage):
    """Master overview: address, uptime, version, capacity and usage."""

    def handle(self, request: Request) -> Response:
        summary = self.master.summary()
        workers = self.master.workers()
        now_ms = int(time.time() * 1000)
        body = summary.model_dump()
        body.update({
            "uptime_ms": max(0, now_ms - summary.start_time_ms),
            "free_bytes": max(0, summary.capacity_bytes - summary.used_bytes),
            "worker_count": len(workers),
        })
        return JSONResponse(body)


class WorkersPage(MasterPage):
    """Workers currently registered with the master."""

    def handle(self, request: Request) -> Response:
        workers = sorted(self.master.workers(), key=lambda w: w.id)
        return JSONResponse({"workers": [w.model_dump() for w in workers]})


class ConfigurationPage(MasterPage):
    """Configuration key/value pairs, sorted by key."""

    def handle(self, request: Request) -> Response:
        configuration = self.master.configuration()
        return JSONResponse({
            "configuration": {k: configuration[k] for k in sorted(configuration)},
        })


class BrowsePage(MasterPage):
    """
    Namespace browser.

    Query parameters:
        path: Directory or file to show, defaults to '/'.

    A directory answers with its sorted entries; a file answers with its
    own info. Unknown paths are 404.
    """

    def handle(self, request: Request) -> Response:
        path = request.query_params.get("path") or "/"
        try:
            info = self.master.file_info(path)
            if not info.is_directory:
                return JSONResponse({
                    "path": info.path,
                    "is_directory": False,
                    "file": _file_entry(info),
                })
            entries = self.master.list_directory(info.path)
        except KeyError:
            return _error(404, f"Path not found: {path}")

        return JSONResponse({
            "path": info.path,
            "is_directory": True,
            "entries": [_file_entry(e) for e in entries],
        })


class MemoryPage(MasterPage):
    """Files whose content is entirely in memory."""

    def handle(self, request: Request) -> Response:
        files = self.master.in_memory_files()
        return JSONResponse({"files": [_file_entry(f) for f in files]})


class DependencyPage(MasterPage):
    """
    Lineage dependencies.

    Query parameters:
        id: Dependency id. Without it, every dependency is listed.
    """

    def handle(self, request: Request) -> Response:
        raw_id = request.query_params.get("id")
        if raw_id is None:
            deps = self.master.dependencies()
            return JSONResponse({"dependencies": [d.model_dump() for d in deps]})

        try:
            dependency_id = int(raw_id)
        except ValueError:
            return _error(400, f"Invalid dependency id: {raw_id}")
        try:
            dependency = self.master.dependency(dependency_id)
        except KeyError:
            return _error(404, f"Dependency not found: {dependency_id}")
        return JSONResponse({"dependency": dependency.model_dump()})


class DownloadPage(MasterPage):
    """
    File download.

    Query parameters:
        path: File to download (required).
    """

    def handle(self, request: Request) -> Response:
        path = request.query_params.get("path")
        if not path:
            return _error(400, "Missing 'path' parameter")
        try:
            info = self.master.file_info(path)
            content = self.master.read_file(info.path)
        except KeyError:
            return _error(404, f"File not found: {path}")

        return Response(
            content=content,
            media_type="application/octet-stream",
            headers={"Content-Disposition": f'attachment; filename="{info.name}"'},
        )


class StaticFileHandler:
    """
    Fallback for every path without a page: serve static assets.

    '/' and directories map to their index.html. Paths resolving outside
    the document root are treated as missing.

    Attributes:
        document_root: Absolute directory the assets are served from.
    """

    index_file = "index.html"

    def __init__(self, document_root: str):
        self.document_root = os.path.realpath(document_root)

    def handle(self, request: Request) -> Response:
        target = self.locate(request.url.path)
        if target is None:
            return _error(404, f"Not found: {request.url.path}")
        return FileResponse(target)

    def locate(self, url_path: str) -> str | None:
        """Return the file backing url_path, or None if there is none."""
        relative = url_path.lstrip("/")
        target = os.path.realpath(os.path.join(self.document_root, relative))
        if os.path.commonpath([self.document_root, target]) != self.document_root:
            return None
        if os.path.isdir(target):
            target = os.path.join(target, self.index_file)
        return target if os.path.isfile(target) else None


# Handler class for each fixed page path, in registration order.
PAGE_HANDLERS: dict[str, type[MasterPage]] = {
    "/home": GeneralPage,
    "/workers": WorkersPage,
    "/configuration": ConfigurationPage,
    "/browse": BrowsePage,
    "/memory": MemoryPage,
    "/dependency": DependencyPage,
    "/download": DownloadPage,
}
