"""Script block locating and substitution.

A script block is a fenced region of a page body::

    ```script
    print("hello")
    ```

The opening line must be exactly three backticks followed by ``script``
and the closing line exactly three backticks. Blocks are located once
against the original body, then replaced in a single left-to-right pass,
so block outputs of any length never shift the spans of later blocks.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass

SCRIPT_BLOCK_PATTERN = re.compile(
    r"^```script\r?\n(?P<source>.*?)^```\r?$",
    re.MULTILINE | re.DOTALL,
)


@dataclass(frozen=True)
class ScriptBlock:
    """Fenced script region of a page body.

    ``start``/``end`` cover both delimiter lines but not the line break
    after the closing delimiter.
    """

    index: int
    start: int
    end: int
    source: str

    def span_text(self, text: str) -> str:
        """Return the full fenced region as it appears in ``text``."""
        return text[self.start : self.end]


def locate_blocks(text: str) -> list[ScriptBlock]:
    """Find all script blocks in document order.

    An opening fence without a closing fence produces no block and stays
    in the text as written.

    Args:
        text: Raw page body

    Returns:
        Blocks ordered by position, indexed from 0
    """
    return [
        ScriptBlock(
            index=i,
            start=match.start(),
            end=match.end(),
            source=match.group("source"),
        )
        for i, match in enumerate(SCRIPT_BLOCK_PATTERN.finditer(text))
    ]


def substitute_blocks(
    text: str,
    blocks: Sequence[ScriptBlock],
    outputs: Sequence[str],
) -> str:
    """Replace each block's span with its output.

    Args:
        text: The original body the blocks were located in
        blocks: Blocks as returned by locate_blocks
        outputs: Replacement text for each block, same order

    Returns:
        New text with every block replaced and all other text unchanged

    Raises:
        ValueError: If blocks and outputs differ in length
    """
    if len(blocks) != len(outputs):
        raise ValueError(f"Expected {len(blocks)} block outputs, got {len(outputs)}")

    parts: list[str] = []
    position = 0
    for block, output in zip(blocks, outputs, strict=True):
        parts.append(text[position : block.start])
        parts.append(output)
        position = block.end
    parts.append(text[position:])
    return "".join(parts)
