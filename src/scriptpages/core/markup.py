"""Markdown to HTML conversion.

Wraps mistune with the page rendering policy: every heading gets a stable
anchor id derived from its text, and external links open in a new tab.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import mistune
from mistune.toc import normalize_toc_item

MARKDOWN_PLUGINS = ("table", "strikethrough", "url", "footnotes", "def_list")

_EXTERNAL_URL = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.-]*:|//)")
_SLUG_SEPARATORS = re.compile(r"[\W_]+")
_MARKDOWN_PUNCTUATION = re.compile(r"\]\([^)]*\)|[*`~\[\]]")


@dataclass(frozen=True)
class TocEntry:
    """Heading entry for the table of contents."""

    level: int
    id: str
    title: str


@dataclass
class MarkupResult:
    """HTML output plus headings found while rendering."""

    html: str
    toc: list[TocEntry]


def slugify(text: str) -> str:
    """Build an anchor id from heading text.

    >>> slugify("Hello, World!")
    'hello-world'
    """
    text = _MARKDOWN_PUNCTUATION.sub("", text)
    slug = _SLUG_SEPARATORS.sub("-", text.lower()).strip("-")
    return slug or "section"


def is_external_url(url: str) -> bool:
    """Whether a link target is absolute (has a scheme or is protocol-relative)."""
    return bool(_EXTERNAL_URL.match(url))


class _HeadingIds:
    """Assigns unique heading ids within one document."""

    def __init__(self) -> None:
        self._seen: dict[str, int] = {}

    def __call__(self, token: dict[str, Any], index: int) -> str:
        base = slugify(token.get("text", ""))
        count = self._seen.get(base, 0)
        self._seen[base] = count + 1
        return base if count == 0 else f"{base}-{count}"


class PageHTMLRenderer(mistune.HTMLRenderer):
    """HTML renderer that opens external links in a new browsing context."""

    def link(self, text: str, url: str, title: str | None = None) -> str:
        html = super().link(text, url, title)
        if is_external_url(url):
            html = '<a target="_blank" rel="noopener noreferrer"' + html[len("<a") :]
        return html


class MarkupRenderer:
    """Converts markdown text to HTML.

    A new mistune instance is built for every call so heading id
    bookkeeping never crosses documents or threads.
    """

    def __init__(self, *, escape_html: bool = False) -> None:
        """Initialize renderer.

        Args:
            escape_html: Escape raw HTML in the markdown instead of passing it through
        """
        self._escape_html = escape_html

    def render(self, text: str) -> MarkupResult:
        """Render markdown text.

        Malformed markup never raises; it degrades to literal text.
        """
        md = self._create_markdown()
        html, state = md.parse(text)
        toc = [
            TocEntry(level=level, id=anchor, title=title)
            for level, anchor, title in state.env.get("toc_items", [])
        ]
        return MarkupResult(html=html, toc=toc)

    def _create_markdown(self) -> mistune.Markdown:
        md = mistune.create_markdown(
            renderer=PageHTMLRenderer(escape=self._escape_html),
            plugins=list(MARKDOWN_PLUGINS),
        )
        md.before_render_hooks.append(_assign_heading_ids)
        return md


def _iter_headings(tokens: list[dict[str, Any]]) -> Iterator[dict[str, Any]]:
    """Yield heading tokens in document order, including nested ones."""
    for token in tokens:
        if token["type"] == "heading":
            yield token
        children = token.get("children")
        if isinstance(children, list):
            yield from _iter_headings(children)


def _assign_heading_ids(md: mistune.Markdown, state: mistune.BlockState) -> None:
    heading_ids = _HeadingIds()
    toc_items = []
    for index, token in enumerate(_iter_headings(state.tokens)):
        token["attrs"]["id"] = heading_ids(token, index)
        toc_items.append(normalize_toc_item(md, token))
    state.env["toc_items"] = toc_items
