"""Tests for the master state snapshot."""

import pytest
from pydantic import ValidationError

from webui.state import MasterState, StaticMasterState, normalize_path


class TestNormalizePath:

    @pytest.mark.parametrize("raw, expected", [
        ("", "/"),
        ("/", "/"),
        ("data", "/data"),
        ("/data/", "/data"),
        ("//data//a.txt", "/data/a.txt"),
        ("/data/../readme", "/readme"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_path(raw) == expected


class TestStaticMasterState:

    def test_satisfies_protocol(self, master_state):
        assert isinstance(master_state, MasterState)

    def test_root_created_when_missing(self, master_state):
        assert master_state.root.is_directory
        assert master_state.file_info("/").path == "/"

    def test_list_directory(self, master_state):
        assert [f.name for f in master_state.list_directory("/data")] == ["a.txt", "b.txt"]

    def test_list_file_is_an_error(self, master_state):
        with pytest.raises(NotADirectoryError):
            master_state.list_directory("/readme")

    def test_unknown_path(self, master_state):
        with pytest.raises(KeyError):
            master_state.file_info("/missing")

    def test_read_directory_is_an_error(self, master_state):
        with pytest.raises(KeyError):
            master_state.read_file("/data")

    def test_configuration_is_read_only(self, master_state):
        with pytest.raises(TypeError):
            master_state.configuration()["master.port"] = "1"

    def test_from_dict(self):
        state = StaticMasterState.from_dict({
            "summary": {"master_address": "m:1", "start_time_ms": 5},
            "workers": [{"id": 1, "address": "w:2"}],
            "files": [{"id": 1, "path": "/f", "in_memory_percentage": 100}],
            "contents": {"/f": "text"},
            "dependencies": [{"id": 3, "parents": [1]}],
        })
        assert state.summary().master_address == "m:1"
        assert state.workers()[0].address == "w:2"
        assert state.read_file("/f") == b"text"
        assert [f.path for f in state.in_memory_files()] == ["/f"]
        assert state.dependency(3).parents == [1]

    def test_from_dict_validates(self):
        with pytest.raises(ValidationError):
            StaticMasterState.from_dict({
                "summary": {"master_address": "m:1"},
                "files": [{"id": 1, "path": "/f", "in_memory_percentage": 150}],
            })
