"""Page rendering pipeline.

Load -> locate script blocks -> execute and substitute -> markdown to HTML.
Every render builds its own ExecutionContext; nothing produced during a
render is kept on the renderer.
"""

import logging
import time
from dataclasses import dataclass

from scriptpages.core.blocks import locate_blocks, substitute_blocks
from scriptpages.core.markup import MarkupRenderer, TocEntry
from scriptpages.core.scripts import DEFAULT_TIMEOUT, BlockResult, ExecutionContext
from scriptpages.core.store import Page, PageStore
from scriptpages.core.tree import build_tree

logger = logging.getLogger(__name__)


@dataclass
class RenderResult:
    """Result of rendering a page."""

    title: str
    html: str
    toc: list[TocEntry]
    blocks: list[BlockResult]

    @property
    def failed_blocks(self) -> list[BlockResult]:
        return [b for b in self.blocks if not b.ok]


class PageRenderer:
    """Renders stored pages to HTML, executing their script blocks.

    Safe to share between concurrent requests: all per-render state lives
    in the ExecutionContext created by each render call.
    """

    def __init__(
        self,
        store: PageStore,
        *,
        script_timeout: float | None = DEFAULT_TIMEOUT,
        expose_tree: bool = False,
        escape_html: bool = False,
    ) -> None:
        """Initialize renderer.

        Args:
            store: Page storage to load pages from
            script_timeout: Per-block execution budget in seconds (None/0 disables)
            expose_tree: Expose the parsed document tree to scripts as ``page.tree``
            escape_html: Escape raw HTML in page markdown
        """
        self._store = store
        self._script_timeout = script_timeout
        self._expose_tree = expose_tree
        self._markup = MarkupRenderer(escape_html=escape_html)

    @property
    def store(self) -> PageStore:
        return self._store

    def new_context(self, page: Page) -> ExecutionContext:
        """Create a fresh execution context for one render of ``page``."""
        tree = build_tree(page.body) if self._expose_tree else None
        return ExecutionContext(page.title, timeout=self._script_timeout, tree=tree)

    def render(self, title: str) -> RenderResult:
        """Load and render a page.

        Raises:
            InvalidTitleError: If the title is not path-safe
            PageNotFoundError: If the page does not exist
        """
        return self.render_page(self._store.load(title))

    def render_text(self, text: str, title: str = "") -> RenderResult:
        """Render markdown text that is not stored as a page."""
        return self.render_page(Page(title=title, body=text))

    def render_page(self, page: Page, context: ExecutionContext | None = None) -> RenderResult:
        """Render a page.

        Args:
            page: Page to render
            context: Execution context created by new_context() for this
                render; callers pass one in to be able to cancel it

        Returns:
            RenderResult with HTML, ToC and per-block outcomes
        """
        started = time.perf_counter()
        if context is None:
            context = self.new_context(page)

        blocks = locate_blocks(page.body)
        results = context.run_all(blocks)
        text = substitute_blocks(page.body, blocks, [r.output for r in results])
        markup = self._markup.render(text)

        failed = sum(1 for r in results if not r.ok)
        logger.info(
            f"Rendered {page.title!r}: {len(blocks)} script blocks ({failed} failed) "
            f"in {time.perf_counter() - started:.3f}s"
        )
        return RenderResult(title=page.title, html=markup.html, toc=markup.toc, blocks=results)
