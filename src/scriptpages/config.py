"""Configuration management for Scriptpages.

Supports TOML configuration format with auto-discovery, a ``PAGES_DIR``
environment override and command-line overrides. Configuration is read
once at startup and never mutated afterwards.
"""

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

CONFIG_FILENAME = "scriptpages.toml"
PAGES_DIR_ENV = "PAGES_DIR"


@dataclass(frozen=True)
class ServerConfig:
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass(frozen=True)
class PagesConfig:
    """Page storage configuration."""

    directory: Path = field(default_factory=lambda: Path("."))


@dataclass(frozen=True)
class ScriptsConfig:
    """Embedded script configuration."""

    timeout: float = 5.0
    expose_tree: bool = False


@dataclass(frozen=True)
class MarkupConfig:
    """Markdown rendering configuration."""

    escape_html: bool = False


@dataclass(frozen=True)
class Config:
    """Application configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    pages: PagesConfig = field(default_factory=PagesConfig)
    scripts: ScriptsConfig = field(default_factory=ScriptsConfig)
    markup: MarkupConfig = field(default_factory=MarkupConfig)
    config_path: Path | None = None

    @classmethod
    def load(
        cls,
        config_path: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "Config":
        """Load configuration from file and environment.

        If config_path is provided, loads from that file. Otherwise,
        searches for scriptpages.toml in current directory and parents.
        A non-empty PAGES_DIR environment variable then overrides the
        pages directory.

        Args:
            config_path: Optional explicit path to config file
            environ: Environment mapping (default: os.environ)

        Returns:
            Config instance with defaults for missing sections

        Raises:
            FileNotFoundError: If explicit config_path doesn't exist
            ValueError: If configuration is invalid
        """
        if config_path is not None:
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            config = cls._load_from_file(config_path)
        else:
            discovered_path = cls._discover_config()
            config = cls() if discovered_path is None else cls._load_from_file(discovered_path)

        env = os.environ if environ is None else environ
        pages_dir = env.get(PAGES_DIR_ENV, "")
        if pages_dir:
            config = config.with_overrides(pages_dir=Path(pages_dir))
        return config

    @classmethod
    def _discover_config(cls) -> Path | None:
        """Search for config file in current directory and parents.

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        while True:
            candidate = current / CONFIG_FILENAME
            if candidate.exists():
                return candidate
            parent = current.parent
            if parent == current:
                return None
            current = parent

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load configuration from a specific file.

        Args:
            path: Path to TOML configuration file

        Returns:
            Config instance

        Raises:
            ValueError: If configuration is invalid
        """
        with path.open("rb") as f:
            data = tomllib.load(f)

        config_dir = path.parent

        return cls(
            server=cls._parse_server(data.get("server")),
            pages=cls._parse_pages(data.get("pages"), config_dir),
            scripts=cls._parse_scripts(data.get("scripts")),
            markup=cls._parse_markup(data.get("markup")),
            config_path=path,
        )

    @classmethod
    def _parse_server(cls, data: object) -> ServerConfig:
        if data is None:
            return ServerConfig()

        if not isinstance(data, dict):
            raise ValueError("server section must be a dictionary")

        host = data.get("host", "127.0.0.1")
        if not isinstance(host, str):
            raise ValueError("server.host must be a string")

        port = data.get("port", 8080)
        if not isinstance(port, int) or isinstance(port, bool):
            raise ValueError("server.port must be an integer")

        return ServerConfig(host=host, port=port)

    @classmethod
    def _parse_pages(cls, data: object, config_dir: Path) -> PagesConfig:
        """Parse pages configuration section.

        Relative directories are resolved against the config file's directory.
        """
        if data is None:
            return PagesConfig(directory=config_dir)

        if not isinstance(data, dict):
            raise ValueError("pages section must be a dictionary")

        directory = data.get("directory", ".")
        if not isinstance(directory, str):
            raise ValueError("pages.directory must be a string")

        return PagesConfig(directory=config_dir / directory)

    @classmethod
    def _parse_scripts(cls, data: object) -> ScriptsConfig:
        if data is None:
            return ScriptsConfig()

        if not isinstance(data, dict):
            raise ValueError("scripts section must be a dictionary")

        timeout = data.get("timeout", 5.0)
        if not isinstance(timeout, int | float) or isinstance(timeout, bool):
            raise ValueError("scripts.timeout must be a number")
        if timeout < 0:
            raise ValueError("scripts.timeout must not be negative")

        expose_tree = data.get("expose_tree", False)
        if not isinstance(expose_tree, bool):
            raise ValueError("scripts.expose_tree must be a boolean")

        return ScriptsConfig(timeout=float(timeout), expose_tree=expose_tree)

    @classmethod
    def _parse_markup(cls, data: object) -> MarkupConfig:
        if data is None:
            return MarkupConfig()

        if not isinstance(data, dict):
            raise ValueError("markup section must be a dictionary")

        escape_html = data.get("escape_html", False)
        if not isinstance(escape_html, bool):
            raise ValueError("markup.escape_html must be a boolean")

        return MarkupConfig(escape_html=escape_html)

    def with_overrides(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        pages_dir: Path | None = None,
        script_timeout: float | None = None,
    ) -> "Config":
        """Create a new Config with CLI overrides applied.

        Only non-None values override the existing config; the original
        Config is not modified.

        Args:
            host: Override server.host
            port: Override server.port
            pages_dir: Override pages.directory
            script_timeout: Override scripts.timeout

        Returns:
            New Config instance with overrides applied
        """
        server = self.server
        if host is not None or port is not None:
            server = replace(
                self.server,
                host=host if host is not None else self.server.host,
                port=port if port is not None else self.server.port,
            )

        pages = self.pages
        if pages_dir is not None:
            pages = replace(self.pages, directory=pages_dir)

        scripts = self.scripts
        if script_timeout is not None:
            scripts = replace(self.scripts, timeout=script_timeout)

        return replace(self, server=server, pages=pages, scripts=scripts)
