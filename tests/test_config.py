"""Tests for configuration loading."""

import os

import pytest

from webui.config import DEFAULT_HOME, DEFAULTS, ConfigManager, ServerConfig


@pytest.fixture
def project(tmp_path):
    return tmp_path


def write(path, text):
    path.write_text(text, encoding="utf-8")


class TestLoad:

    def test_defaults_without_files(self, project):
        config = ConfigManager(str(project), environ={}).load()
        assert config["web"] == DEFAULTS["web"]
        assert config["master"]["home"] == DEFAULT_HOME
        assert "_config_error" not in config

    def test_defaults_are_not_shared(self, project):
        config = ConfigManager(str(project), environ={}).load()
        config["web"]["port"] = 1
        assert DEFAULTS["web"]["port"] == 19999

    def test_yaml_merged_over_defaults(self, project):
        write(project / "config.yaml", "web:\n  threads: 4\n  port: 8080\n")
        config = ConfigManager(str(project), environ={}).load()
        assert config["web"]["threads"] == 4
        assert config["web"]["port"] == 8080
        assert config["web"]["host"] == "0.0.0.0"

    @pytest.mark.parametrize("text", ["web: [unclosed", "- just\n- a list\n"])
    def test_corrupt_yaml_falls_back(self, project, text):
        write(project / "config.yaml", text)
        config = ConfigManager(str(project), environ={}).load()
        assert config["web"] == DEFAULTS["web"]
        assert config["_config_error"]

    def test_dotenv_overrides_yaml(self, project):
        write(project / "config.yaml", "web:\n  threads: 4\n")
        write(project / ".env", "MASTER_WEB_THREADS=6\nMASTER_HOME=/srv/master\n")
        config = ConfigManager(str(project), environ={}).load()
        assert config["web"]["threads"] == "6"
        assert config["master"]["home"] == "/srv/master"

    def test_environment_overrides_dotenv(self, project):
        write(project / ".env", "MASTER_WEB_THREADS=6\n")
        environ = {"MASTER_WEB_THREADS": "8", "MASTER_WEB_RESOURCES": "/srv/web"}
        config = ConfigManager(str(project), environ=environ).load()
        assert config["web"]["threads"] == "8"
        assert config["web"]["resources"] == "/srv/web"

    def test_empty_environment_values_ignored(self, project):
        config = ConfigManager(str(project), environ={"MASTER_WEB_HOST": ""}).load()
        assert config["web"]["host"] == "0.0.0.0"


class TestServerConfig:

    def test_from_defaults(self, project):
        config = ConfigManager(str(project), environ={}).server_config()
        assert config == ServerConfig(thread_count=1, home_directory=DEFAULT_HOME)

    def test_from_strings(self, project):
        manager = ConfigManager(str(project), environ={
            "MASTER_WEB_THREADS": "3",
            "MASTER_HOME": "/srv/master",
            "MASTER_WEB_RESOURCES": "/srv/web",
        })
        config = manager.server_config()
        assert config.thread_count == 3
        assert config.home_directory == "/srv/master"
        assert config.document_root == "/srv/web"

    def test_missing_threads_means_default(self, project):
        write(project / "config.yaml", "web:\n  threads: null\n")
        config = ConfigManager(str(project), environ={}).server_config()
        assert config.thread_count is None

    @pytest.mark.parametrize("threads", ["many", "true"])
    def test_non_integer_threads(self, project, threads):
        write(project / "config.yaml", f"web:\n  threads: {threads}\n")
        with pytest.raises(ValueError, match="web.threads"):
            ConfigManager(str(project), environ={}).server_config()

    def test_bind_address(self, project):
        manager = ConfigManager(str(project), environ={"MASTER_WEB_HOST": "127.0.0.1", "MASTER_WEB_PORT": "0"})
        assert manager.bind_address() == ("127.0.0.1", 0)

    def test_bind_address_defaults(self, project):
        assert ConfigManager(str(project), environ={}).bind_address() == ("0.0.0.0", 19999)


class TestDocumentRoot:

    def test_derived_from_home(self):
        config = ServerConfig(home_directory="/srv/master")
        assert config.resolve_document_root() == os.path.abspath("/srv/master/core/src/main/webapp")

    def test_override(self, tmp_path):
        config = ServerConfig(home_directory="/srv/master", document_root=str(tmp_path))
        assert config.resolve_document_root() == str(tmp_path)

    def test_relative_override_made_absolute(self):
        config = ServerConfig(document_root="webapp")
        assert config.resolve_document_root() == os.path.abspath("webapp")

    def test_frozen(self):
        config = ServerConfig()
        with pytest.raises(AttributeError):
            config.thread_count = 2
