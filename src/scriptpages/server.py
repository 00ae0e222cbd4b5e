"""aiohttp server for Scriptpages.

Application factory and route registration.
"""

import logging

from aiohttp import web

from scriptpages.api.pages import create_pages_routes
from scriptpages.app_keys import config_key, renderer_key
from scriptpages.config import Config
from scriptpages.core.renderer import PageRenderer
from scriptpages.core.store import PageStore

logger = logging.getLogger(__name__)


async def greeting(request: web.Request) -> web.Response:
    """Answer any other path with a plain greeting echoing the path."""
    return web.Response(text=f"Hi there, I love {request.path}!")


def create_app(config: Config) -> web.Application:
    """Create aiohttp application.

    Args:
        config: Application configuration

    Returns:
        Configured aiohttp application
    """
    app = web.Application()

    store = PageStore(config.pages.directory)
    renderer = PageRenderer(
        store,
        script_timeout=config.scripts.timeout,
        expose_tree=config.scripts.expose_tree,
        escape_html=config.markup.escape_html,
    )

    app[config_key] = config
    app[renderer_key] = renderer

    app.router.add_routes(create_pages_routes())

    # Greeting - must be last to catch all other routes
    app.router.add_get("/{path:.*}", greeting)

    return app


def run_server(config: Config) -> None:
    """Run the server.

    Args:
        config: Application configuration
    """
    app = create_app(config)
    logger.info(f"Serving pages from {config.pages.directory}")
    web.run_app(app, host=config.server.host, port=config.server.port)
