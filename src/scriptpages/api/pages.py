"""Page view endpoint.

Loads a page, renders it (running its script blocks) and returns raw HTML.
"""

import asyncio
import logging

from aiohttp import web

from scriptpages.app_keys import renderer_key
from scriptpages.core.store import InvalidTitleError, PageNotFoundError

logger = logging.getLogger(__name__)


def create_pages_routes() -> list[web.RouteDef]:
    return [
        web.get("/view/{title}", view_page),
    ]


async def view_page(request: web.Request) -> web.Response:
    title = request.match_info["title"]
    renderer = request.app[renderer_key]
    loop = asyncio.get_running_loop()

    try:
        page = await loop.run_in_executor(None, renderer.store.load, title)
    except InvalidTitleError as e:
        logger.warning(f"Rejected page title {title!r}: {e}")
        raise web.HTTPBadRequest(text="400: Invalid page title") from e
    except PageNotFoundError as e:
        logger.warning(f"Page not found: {e}")
        raise web.HTTPNotFound() from e

    # Script blocks may run for a while, so render off the event loop.
    # If this request goes away, stop the scripts at their next line.
    context = renderer.new_context(page)
    try:
        result = await loop.run_in_executor(None, renderer.render_page, page, context)
    except asyncio.CancelledError:
        context.cancel()
        raise

    return web.Response(
        body=result.html.encode("utf-8"),
        content_type="text/html",
        charset="utf-8",
    )
