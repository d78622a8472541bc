"""
Master Web Console - Configuration
==================================
Loads the web console settings from three sources, in increasing order of
precedence:

1. config.yaml  - Settings file in the project directory
2. .env         - Local overrides kept out of version control
3. Environment  - Process environment variables

The loaded dictionary is turned into an immutable ServerConfig, which is
what the UIWebServer consumes.

Usage:
    manager = ConfigManager(project_dir="/path/to/master")
    settings = manager.load()             # Merged config dict
    config = manager.server_config()      # ServerConfig for UIWebServer
    host, port = manager.bind_address()   # Address to listen on
"""

import os
from dataclasses import dataclass

import yaml
from dotenv import dotenv_values


# Base directory used to derive the static asset root when no explicit
# document root is configured.
DEFAULT_HOME = "/opt/master"

# Location of the static web assets relative to the home directory.
WEBAPP_SUBDIR = os.path.join("core", "src", "main", "webapp")

# Default configuration values used when config.yaml is missing or incomplete.
DEFAULTS = {
    "web": {
        "name": "MasterUI",
        "host": "0.0.0.0",
        "port": 19999,
        "threads": 1,
        "resources": None,
    },
    "master": {
        "home": DEFAULT_HOME,
    },
    "logging": {
        "level": "info",
    },
}

# Environment variables (from .env or the process) and the config key
# each one overrides.
ENV_OVERRIDES = {
    "MASTER_WEB_HOST": ("web", "host"),
    "MASTER_WEB_PORT": ("web", "port"),
    "MASTER_WEB_THREADS": ("web", "threads"),
    "MASTER_WEB_RESOURCES": ("web", "resources"),
    "MASTER_HOME": ("master", "home"),
    "MASTER_LOG_LEVEL": ("logging", "level"),
}


@dataclass(frozen=True)
class ServerConfig:
    """
    Immutable settings consumed by UIWebServer.

    Attributes:
        thread_count:   Acceptor concurrency N. None means the default of 1.
        home_directory: Base path used to derive the default document root.
        document_root:  Explicit static asset root, overrides the derived one.
    """

    thread_count: int | None = 1
    home_directory: str = DEFAULT_HOME
    document_root: str | None = None

    def resolve_document_root(self) -> str:
        """
        Return the absolute static asset directory.

        The explicit document_root wins; otherwise the webapp directory
        under home_directory is used.
        """
        if self.document_root:
            return os.path.abspath(self.document_root)
        return os.path.abspath(os.path.join(self.home_directory, WEBAPP_SUBDIR))


class ConfigManager:
    """
    Reads the console configuration for a project directory.

    Attributes:
        project_dir: Root directory holding config.yaml and .env.
        config_path: Full path to config.yaml.
        env_path:    Full path to .env.
    """

    def __init__(self, project_dir: str, environ: dict | None = None):
        """
        Initialize the config manager.

        Args:
            project_dir: Absolute path to the project root directory.
            environ:     Environment mapping to read overrides from.
                         Defaults to os.environ.
        """
        self.project_dir = project_dir
        self.config_path = os.path.join(project_dir, "config.yaml")
        self.env_path = os.path.join(project_dir, ".env")
        self._environ = os.environ if environ is None else environ

    def load(self) -> dict:
        """
        Load and merge configuration from all sources.

        Missing values are filled from DEFAULTS. A corrupt config.yaml is
        ignored and the parse error is recorded under '_config_error'.

        Returns:
            A dictionary containing the full configuration.
        """
        config = _deep_copy(DEFAULTS)

        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    user_config = yaml.safe_load(f) or {}
                if not isinstance(user_config, dict):
                    raise yaml.YAMLError("config.yaml must contain a mapping")
                _deep_merge(config, user_config)
            except (yaml.YAMLError, OSError) as e:
                config["_config_error"] = str(e)

        # .env first, then the real environment on top of it
        env_values = dotenv_values(self.env_path) if os.path.exists(self.env_path) else {}
        for source in (env_values, self._environ):
            for env_name, (section, key) in ENV_OVERRIDES.items():
                value = source.get(env_name)
                if value not in (None, ""):
                    config.setdefault(section, {})[key] = value

        return config

    def server_config(self, config: dict | None = None) -> ServerConfig:
        """
        Build a ServerConfig from the loaded configuration.

        Args:
            config: Previously loaded config dict. Loaded fresh if None.

        Returns:
            ServerConfig with thread count, home and document root.

        Raises:
            ValueError: If the thread count is not an integer.
        """
        if config is None:
            config = self.load()
        web = config.get("web", {})
        master = config.get("master", {})

        threads = web.get("threads")
        return ServerConfig(
            thread_count=_to_int("web.threads", threads) if threads is not None else None,
            home_directory=str(master.get("home") or DEFAULT_HOME),
            document_root=web.get("resources") or None,
        )

    def bind_address(self, config: dict | None = None) -> tuple[str, int]:
        """Return the (host, port) pair the console should listen on."""
        if config is None:
            config = self.load()
        web = config.get("web", {})
        host = str(web.get("host") or DEFAULTS["web"]["host"])
        port = web.get("port")
        port = DEFAULTS["web"]["port"] if port is None else _to_int("web.port", port)
        return host, port


# -- Helper Functions ---------------------------------------------------------

def _to_int(name: str, value) -> int:
    """Convert a config value to int, naming the key on failure."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _deep_copy(d: dict) -> dict:
    """Create a deep copy of a nested dictionary."""
    result = {}
    for key, value in d.items():
        if isinstance(value, dict):
            result[key] = _deep_copy(value)
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _deep_merge(base: dict, override: dict) -> None:
    """
    Recursively merge 'override' into 'base' (in-place).

    For nested dicts, values are merged recursively.
    For all other types, override replaces base.
    """
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
