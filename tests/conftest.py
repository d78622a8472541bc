"""Shared fixtures: a sample master snapshot, static assets and servers."""

import socket

import pytest

from webui.config import ServerConfig
from webui.main import ServerState, UIWebServer
from webui.state import (
    DependencyInfo,
    FileInfo,
    MasterSummary,
    StaticMasterState,
    WorkerInfo,
)


@pytest.fixture
def master_state():
    """A small master with two workers, a few files and one dependency."""
    return StaticMasterState(
        summary=MasterSummary(
            master_address="master:19998",
            version="1.0.0",
            start_time_ms=1_000,
            capacity_bytes=2048,
            used_bytes=512,
        ),
        workers=[
            WorkerInfo(id=2, address="worker-b:29998", capacity_bytes=1024, used_bytes=256),
            WorkerInfo(id=1, address="worker-a:29998", capacity_bytes=1024, used_bytes=256),
        ],
        files=[
            FileInfo(id=1, path="/data", is_directory=True),
            FileInfo(id=2, path="/data/a.txt", size_bytes=5, in_memory_percentage=100),
            FileInfo(id=3, path="/data/b.txt", size_bytes=7, in_memory_percentage=40, dependency_id=7),
            FileInfo(id=4, path="/readme", size_bytes=3, in_memory_percentage=100),
        ],
        configuration={"master.port": 19998, "master.home": "/opt/master"},
        dependencies=[DependencyInfo(id=7, parents=[2], children=[3], command="wc -l")],
        contents={"/data/a.txt": b"hello", "/readme": b"hi\n"},
    )


@pytest.fixture
def document_root(tmp_path):
    """Static asset directory with an index page and a stylesheet."""
    root = tmp_path / "webapp"
    (root / "css").mkdir(parents=True)
    (root / "index.html").write_text("<html>console</html>", encoding="utf-8")
    (root / "css" / "style.css").write_text("body {}", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("outside", encoding="utf-8")
    return root


@pytest.fixture
def server_config(document_root):
    return ServerConfig(thread_count=1, document_root=str(document_root))


@pytest.fixture
def make_server(master_state, server_config):
    """Factory building servers on 127.0.0.1; running ones are stopped afterwards."""
    servers = []

    def factory(port=0, config=None, name="MasterUI"):
        server = UIWebServer(name, ("127.0.0.1", port), master_state, config or server_config)
        servers.append(server)
        return server

    yield factory

    for server in servers:
        if server.state is ServerState.RUNNING:
            server.stop()


@pytest.fixture
def running_server(make_server):
    server = make_server()
    server.start()
    return server


def free_port(host="127.0.0.1"):
    """Ask the OS for a port that is currently unused."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return s.getsockname()[1]


def can_bind(host, port):
    """True if an unrelated listener can bind host:port right now."""
    try:
        with socket.create_server((host, port)):
            return True
    except OSError:
        return False
