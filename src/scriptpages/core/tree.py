"""Read-only document tree for page scripts.

Converts the mistune AST of a page body into immutable TreeNode values.
Only a fixed set of node kinds is produced; every mistune token type is
mapped by an explicit handler, and anything unrecognized becomes an
``other`` node that keeps its children.
"""

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

import mistune

from scriptpages.core.markup import MARKDOWN_PLUGINS

NODE_KINDS = frozenset(
    {
        "document",
        "paragraph",
        "heading",
        "text",
        "emphasis",
        "strong",
        "codespan",
        "block_code",
        "link",
        "image",
        "list",
        "list_item",
        "block_quote",
        "thematic_break",
        "linebreak",
        "html",
        "other",
    }
)


@dataclass(frozen=True)
class TreeNode:
    """Immutable document node."""

    kind: str
    children: tuple["TreeNode", ...] = ()
    text: str | None = None
    level: int | None = None
    url: str | None = None

    def walk(self) -> Iterator["TreeNode"]:
        """Yield this node and all descendants, depth-first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, kind: str) -> tuple["TreeNode", ...]:
        """Return all descendant-or-self nodes of one kind."""
        return tuple(node for node in self.walk() if node.kind == kind)

    def plain_text(self) -> str:
        """Concatenate the text of all text-bearing descendants."""
        return "".join(
            node.text for node in self.walk() if node.text is not None and node.kind in ("text", "codespan")
        )


Token = dict[str, Any]


class _TreeBuilder:
    """Maps mistune tokens to TreeNode, one handler per token type."""

    def __init__(self) -> None:
        self._handlers: dict[str, Callable[[Token], TreeNode | None]] = {
            "paragraph": self._container("paragraph"),
            "block_text": self._container("paragraph"),
            "emphasis": self._container("emphasis"),
            "strong": self._container("strong"),
            "block_quote": self._container("block_quote"),
            "list_item": self._container("list_item"),
            "list": self._list,
            "heading": self._heading,
            "text": self._leaf("text"),
            "codespan": self._leaf("codespan"),
            "block_code": self._leaf("block_code"),
            "block_html": self._leaf("html"),
            "inline_html": self._leaf("html"),
            "link": self._link("link"),
            "image": self._link("image"),
            "thematic_break": lambda token: TreeNode(kind="thematic_break"),
            "linebreak": lambda token: TreeNode(kind="linebreak"),
            "softbreak": lambda token: TreeNode(kind="text", text="\n"),
            "blank_line": lambda token: None,
        }

    def document(self, tokens: list[Token]) -> TreeNode:
        return TreeNode(kind="document", children=self._children(tokens))

    def node(self, token: Token) -> TreeNode | None:
        handler = self._handlers.get(token.get("type", ""))
        if handler is None:
            return TreeNode(kind="other", children=self._children(token.get("children")))
        return handler(token)

    def _children(self, tokens: list[Token] | None) -> tuple[TreeNode, ...]:
        if not tokens:
            return ()
        nodes = (self.node(token) for token in tokens)
        return tuple(node for node in nodes if node is not None)

    def _container(self, kind: str) -> Callable[[Token], TreeNode]:
        return lambda token: TreeNode(kind=kind, children=self._children(token.get("children")))

    def _leaf(self, kind: str) -> Callable[[Token], TreeNode]:
        return lambda token: TreeNode(kind=kind, text=token.get("raw", ""))

    def _link(self, kind: str) -> Callable[[Token], TreeNode]:
        def build(token: Token) -> TreeNode:
            attrs = token.get("attrs", {})
            return TreeNode(kind=kind, children=self._children(token.get("children")), url=attrs.get("url"))

        return build

    def _heading(self, token: Token) -> TreeNode:
        return TreeNode(
            kind="heading",
            children=self._children(token.get("children")),
            level=token.get("attrs", {}).get("level"),
        )

    def _list(self, token: Token) -> TreeNode:
        # Nested list depth is reported as level, starting at 0
        return TreeNode(
            kind="list",
            children=self._children(token.get("children")),
            level=token.get("attrs", {}).get("depth", 0),
        )


def build_tree(text: str) -> TreeNode:
    """Parse markdown text into a read-only document tree."""
    parse = mistune.create_markdown(renderer="ast", plugins=list(MARKDOWN_PLUGINS))
    tokens = parse(text)
    return _TreeBuilder().document(tokens)
