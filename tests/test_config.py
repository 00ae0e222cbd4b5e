"""Tests for configuration loading."""

import dataclasses
from pathlib import Path

import pytest
from scriptpages.config import (
    CONFIG_FILENAME,
    Config,
    MarkupConfig,
    PagesConfig,
    ScriptsConfig,
    ServerConfig,
)


class TestConfigLoad:
    """Tests for Config.load()."""

    def test__explicit_path__loads_config(self, tmp_path: Path) -> None:
        """Load config from explicit path."""
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text("""
[server]
host = "0.0.0.0"
port = 3000

[pages]
directory = "wiki"

[scripts]
timeout = 1.5
expose_tree = true

[markup]
escape_html = true
""")

        config = Config.load(config_file, environ={})

        assert config.server == ServerConfig(host="0.0.0.0", port=3000)
        assert config.pages.directory == tmp_path / "wiki"
        assert config.scripts == ScriptsConfig(timeout=1.5, expose_tree=True)
        assert config.markup == MarkupConfig(escape_html=True)
        assert config.config_path == config_file

    def test__minimal_config__uses_defaults(self, tmp_path: Path) -> None:
        """Empty config file yields defaults relative to its directory."""
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text("")

        config = Config.load(config_file, environ={})

        assert config.server == ServerConfig()
        assert config.pages.directory == tmp_path
        assert config.scripts.timeout == 5.0
        assert config.scripts.expose_tree is False
        assert config.markup.escape_html is False

    def test__integer_timeout__accepted(self, tmp_path: Path) -> None:
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text("[scripts]\ntimeout = 0\n")

        assert Config.load(config_file, environ={}).scripts.timeout == 0.0

    def test__missing_explicit_path__raises_error(self, tmp_path: Path) -> None:
        """Raise FileNotFoundError for missing explicit config file."""
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            Config.load(tmp_path / "nonexistent.toml", environ={})

    def test__no_config_found__uses_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Fall back to defaults with current directory for pages."""
        monkeypatch.chdir(tmp_path)

        config = Config.load(environ={})

        assert config.config_path is None
        assert config.pages.directory == Path(".")
        assert config.server.port == 8080

    def test__discovers_config_in_parent(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Search parent directories for scriptpages.toml."""
        (tmp_path / CONFIG_FILENAME).write_text("[server]\nport = 9000\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        config = Config.load(environ={})

        assert config.config_path == tmp_path / CONFIG_FILENAME
        assert config.server.port == 9000

    @pytest.mark.parametrize(
        ("content", "message"),
        [
            ('server = "x"', "server section must be a dictionary"),
            ('[server]\nhost = 1', "server.host must be a string"),
            ('[server]\nport = "80"', "server.port must be an integer"),
            ("[pages]\ndirectory = 3", "pages.directory must be a string"),
            ('[scripts]\ntimeout = "fast"', "scripts.timeout must be a number"),
            ("[scripts]\ntimeout = true", "scripts.timeout must be a number"),
            ("[scripts]\ntimeout = -1", "scripts.timeout must not be negative"),
            ('[scripts]\nexpose_tree = "yes"', "scripts.expose_tree must be a boolean"),
            ("[markup]\nescape_html = 1", "markup.escape_html must be a boolean"),
        ],
    )
    def test__invalid_values__raise_value_error(self, tmp_path: Path, content: str, message: str) -> None:
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text(content)

        with pytest.raises(ValueError, match=message):
            Config.load(config_file, environ={})


class TestPagesDirEnvironment:
    """Tests for the PAGES_DIR override."""

    def test__env_var__overrides_config_directory(self, tmp_path: Path) -> None:
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text('[pages]\ndirectory = "wiki"\n')

        config = Config.load(config_file, environ={"PAGES_DIR": "/srv/pages"})

        assert config.pages.directory == Path("/srv/pages")

    def test__empty_env_var__ignored(self, tmp_path: Path) -> None:
        config_file = tmp_path / CONFIG_FILENAME
        config_file.write_text('[pages]\ndirectory = "wiki"\n')

        config = Config.load(config_file, environ={"PAGES_DIR": ""})

        assert config.pages.directory == tmp_path / "wiki"

    def test__process_environment__used_by_default(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PAGES_DIR", str(tmp_path / "from-env"))

        config = Config.load()

        assert config.pages.directory == tmp_path / "from-env"


class TestWithOverrides:
    """Tests for Config.with_overrides()."""

    def test__overrides__return_new_config(self) -> None:
        """Apply overrides without touching the original."""
        original = Config()

        updated = original.with_overrides(host="0.0.0.0", pages_dir=Path("/data"), script_timeout=1.0)

        assert updated.server == ServerConfig(host="0.0.0.0", port=8080)
        assert updated.pages == PagesConfig(directory=Path("/data"))
        assert updated.scripts.timeout == 1.0
        assert original == Config()

    def test__no_overrides__keeps_values(self) -> None:
        config = Config(server=ServerConfig(port=1234))

        assert config.with_overrides() == config

    def test__config__is_frozen(self) -> None:
        """Configuration cannot be mutated after construction."""
        config = Config()

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.server = ServerConfig(port=1)  # type: ignore[misc]
