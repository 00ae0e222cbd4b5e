"""CLI interface for Scriptpages.

Serve pages over HTTP, render a single page, or store a page file.
"""

import logging
import sys
from pathlib import Path

import click

from scriptpages.config import Config
from scriptpages.core.renderer import PageRenderer
from scriptpages.core.store import InvalidTitleError, Page, PageNotFoundError, PageStore

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: auto-discover scriptpages.toml)",
)
pages_dir_option = click.option(
    "--pages-dir",
    "-d",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Page storage directory (overrides config and PAGES_DIR)",
)


@click.group()
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable debug logging",
)
def cli(verbose: bool) -> None:
    """Scriptpages - Markdown wiki pages with embedded scripts."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


@cli.command()
@config_option
@pages_dir_option
@click.option(
    "--host",
    default=None,
    help="Host to bind to (overrides config)",
)
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to bind to (overrides config)",
)
@click.option(
    "--timeout",
    type=click.FloatRange(min=0),
    default=None,
    help="Per-block script time budget in seconds, 0 disables (overrides config)",
)
def serve(
    config_path: Path | None,
    pages_dir: Path | None,
    host: str | None,
    port: int | None,
    timeout: float | None,
) -> None:
    """Start the page server."""
    from scriptpages.server import run_server

    config = _load_config(config_path).with_overrides(
        host=host,
        port=port,
        pages_dir=pages_dir,
        script_timeout=timeout,
    )

    click.echo(f"Starting server on {config.server.host}:{config.server.port}")
    click.echo(f"Pages directory: {config.pages.directory}")
    if config.scripts.timeout:
        click.echo(f"Script timeout: {config.scripts.timeout:g}s per block")
    else:
        click.echo("Script timeout: disabled")

    run_server(config)


@cli.command()
@click.argument("title")
@config_option
@pages_dir_option
def render(title: str, config_path: Path | None, pages_dir: Path | None) -> None:
    """Render page TITLE to HTML on standard output."""
    config = _load_config(config_path).with_overrides(pages_dir=pages_dir)
    renderer = PageRenderer(
        PageStore(config.pages.directory),
        script_timeout=config.scripts.timeout,
        expose_tree=config.scripts.expose_tree,
        escape_html=config.markup.escape_html,
    )

    try:
        result = renderer.render(title)
    except (InvalidTitleError, PageNotFoundError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(result.html, nl=False)
    for block in result.failed_blocks:
        click.echo(
            click.style(f"Warning: script block {block.index} failed: {block.error}", fg="yellow"),
            err=True,
        )


@cli.command()
@click.argument("title")
@click.argument("source", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@config_option
@pages_dir_option
def save(title: str, source: Path, config_path: Path | None, pages_dir: Path | None) -> None:
    """Store the content of SOURCE as page TITLE."""
    config = _load_config(config_path).with_overrides(pages_dir=pages_dir)
    store = PageStore(config.pages.directory)

    try:
        body = source.read_bytes().decode("utf-8")
        store.save(Page(title=title, body=body))
    except (InvalidTitleError, OSError, UnicodeDecodeError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(f"Saved {title} to {store.path_for(title)}")


def _load_config(config_path: Path | None) -> Config:
    """Load configuration, exiting with a message when it is invalid."""
    try:
        return Config.load(config_path)
    except (OSError, ValueError) as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
