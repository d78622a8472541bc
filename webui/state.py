"""
Master Web Console - Shared Master State
========================================
The page handlers read everything they show from a single shared
master-state handle. The real master node provides it; this module defines
the interface the handlers rely on, the view models they serialize, and a
read-only snapshot implementation used by the command-line entry point and
the tests.

Implementations must be safe for concurrent reads: page handlers run on
several worker threads at once and never lock the state themselves.

Lookups of unknown paths or ids raise KeyError.
"""

import posixpath
import time
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# View Models (Pydantic)
# =============================================================================

class MasterSummary(BaseModel):
    """Overview of the master node shown on the home page."""
    model_config = ConfigDict(frozen=True)

    master_address: str
    version: str = ""
    start_time_ms: int = Field(default_factory=lambda: int(time.time() * 1000))
    capacity_bytes: int = 0
    used_bytes: int = 0


class WorkerInfo(BaseModel):
    """A worker registered with the master."""
    model_config = ConfigDict(frozen=True)

    id: int
    address: str
    state: str = "In Service"
    capacity_bytes: int = 0
    used_bytes: int = 0
    last_heartbeat_ms: int = 0


class FileInfo(BaseModel):
    """A file or directory in the master's namespace."""
    model_config = ConfigDict(frozen=True)

    id: int
    path: str
    is_directory: bool = False
    size_bytes: int = 0
    in_memory_percentage: int = Field(default=0, ge=0, le=100)
    creation_time_ms: int = 0
    dependency_id: int = -1

    @property
    def name(self) -> str:
        """Last path component, '/' for the root."""
        return posixpath.basename(self.path) or "/"


class DependencyInfo(BaseModel):
    """A lineage dependency between input and output files."""
    model_config = ConfigDict(frozen=True)

    id: int
    parents: list[int] = Field(default_factory=list)
    children: list[int] = Field(default_factory=list)
    command: str = ""
    comment: str = ""


# =============================================================================
# Master State Interface
# =============================================================================

@runtime_checkable
class MasterState(Protocol):
    """Read-only view of the master node used by the page handlers."""

    def summary(self) -> MasterSummary: ...

    def workers(self) -> list[WorkerInfo]: ...

    def configuration(self) -> Mapping[str, str]: ...

    def file_info(self, path: str) -> FileInfo: ...

    def list_directory(self, path: str) -> list[FileInfo]: ...

    def in_memory_files(self) -> list[FileInfo]: ...

    def dependencies(self) -> list[DependencyInfo]: ...

    def dependency(self, dependency_id: int) -> DependencyInfo: ...

    def read_file(self, path: str) -> bytes: ...


def normalize_path(path: str) -> str:
    """Normalize a namespace path to an absolute form without trailing slash."""
    path = posixpath.normpath("/" + (path or "").strip())
    # normpath keeps a leading '//' as-is
    return "/" + path.lstrip("/")


class StaticMasterState:
    """
    Immutable snapshot of master state.

    All collections are copied into tuples / read-only mappings at
    construction time, so concurrent reads need no locking.

    Attributes:
        root: FileInfo of the namespace root, always a directory.
    """

    def __init__(
        self,
        summary: MasterSummary,
        workers: Iterable[WorkerInfo] = (),
        files: Iterable[FileInfo] = (),
        configuration: Mapping[str, Any] | None = None,
        dependencies: Iterable[DependencyInfo] = (),
        contents: Mapping[str, bytes] | None = None,
    ):
        self._summary = summary
        self._workers = tuple(workers)

        files_by_path = {}
        for info in files:
            path = normalize_path(info.path)
            files_by_path[path] = info.model_copy(update={"path": path})
        if "/" not in files_by_path:
            files_by_path["/"] = FileInfo(id=0, path="/", is_directory=True)
        self.root = files_by_path["/"]
        self._files = MappingProxyType(files_by_path)

        self._configuration = MappingProxyType(
            {str(k): str(v) for k, v in (configuration or {}).items()}
        )
        self._dependencies = MappingProxyType({d.id: d for d in dependencies})
        self._contents = MappingProxyType(
            {normalize_path(k): bytes(v) for k, v in (contents or {}).items()}
        )

    @classmethod
    def from_dict(cls, data: dict) -> "StaticMasterState":
        """
        Build a snapshot from plain JSON-compatible data.

        Expected keys: 'summary' (required), 'workers', 'files',
        'configuration', 'dependencies', 'contents' (path -> text).

        Raises:
            pydantic.ValidationError: If any entry does not match its model.
        """
        contents = {
            path: text.encode("utf-8") if isinstance(text, str) else bytes(text)
            for path, text in (data.get("contents") or {}).items()
        }
        return cls(
            summary=MasterSummary.model_validate(data["summary"]),
            workers=[WorkerInfo.model_validate(w) for w in data.get("workers") or []],
            files=[FileInfo.model_validate(f) for f in data.get("files") or []],
            configuration=data.get("configuration") or {},
            dependencies=[DependencyInfo.model_validate(d) for d in data.get("dependencies") or []],
            contents=contents,
        )

    def summary(self) -> MasterSummary:
        return self._summary

    def workers(self) -> list[WorkerInfo]:
        return list(self._workers)

    def configuration(self) -> Mapping[str, str]:
        return self._configuration

    def file_info(self, path: str) -> FileInfo:
        return self._files[normalize_path(path)]

    def list_directory(self, path: str) -> list[FileInfo]:
        """
        List the direct children of a directory, sorted by path.

        Raises:
            KeyError: If path does not exist.
            NotADirectoryError: If path is a file.
        """
        directory = self.file_info(path)
        if not directory.is_directory:
            raise NotADirectoryError(directory.path)
        return sorted(
            (
                info for p, info in self._files.items()
                if p != "/" and posixpath.dirname(p) == directory.path
            ),
            key=lambda info: info.path,
        )

    def in_memory_files(self) -> list[FileInfo]:
        return sorted(
            (
                info for info in self._files.values()
                if not info.is_directory and info.in_memory_percentage == 100
            ),
            key=lambda info: info.path,
        )

    def dependencies(self) -> list[DependencyInfo]:
        return [self._dependencies[k] for k in sorted(self._dependencies)]

    def dependency(self, dependency_id: int) -> DependencyInfo:
        return self._dependencies[dependency_id]

    def read_file(self, path: str) -> bytes:
        """
        Return the content of a file.

        Raises:
            KeyError: If the file is unknown, is a directory, or has no content.
        """
        info = self.file_info(path)
        if info.is_directory:
            raise KeyError(info.path)
        return self._contents[info.path]
