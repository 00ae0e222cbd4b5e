"""Shared test fixtures."""

from pathlib import Path

import pytest
from scriptpages.config import Config, MarkupConfig, PagesConfig, ScriptsConfig, ServerConfig
from scriptpages.core.renderer import PageRenderer
from scriptpages.core.store import PageStore


@pytest.fixture
def pages_dir(tmp_path: Path) -> Path:
    """Create an empty pages directory."""
    pages = tmp_path / "pages"
    pages.mkdir(exist_ok=True)
    return pages


@pytest.fixture
def test_config(pages_dir: Path) -> Config:
    """Create a test configuration pointing at pages_dir."""
    return Config(
        server=ServerConfig(),
        pages=PagesConfig(directory=pages_dir),
        scripts=ScriptsConfig(timeout=2.0),
        markup=MarkupConfig(),
    )


@pytest.fixture
def store(pages_dir: Path) -> PageStore:
    return PageStore(pages_dir)


@pytest.fixture
def renderer(store: PageStore) -> PageRenderer:
    return PageRenderer(store, script_timeout=2.0)
