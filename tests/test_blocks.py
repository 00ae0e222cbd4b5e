"""Tests for script block locating and substitution."""

import pytest
from scriptpages.core.blocks import ScriptBlock, locate_blocks, substitute_blocks


class TestLocateBlocks:
    """Tests for locate_blocks()."""

    def test__single_block__returns_source_and_span(self) -> None:
        """Locate one fenced block with its inner source."""
        text = "# Hi\n\n```script\nprint(\"world\")\n```\n"

        blocks = locate_blocks(text)

        assert len(blocks) == 1
        block = blocks[0]
        assert block.index == 0
        assert block.source == 'print("world")\n'
        assert block.span_text(text) == '```script\nprint("world")\n```'
        assert text[block.end :] == "\n"

    def test__multiple_blocks__in_document_order(self) -> None:
        """Index blocks by order of appearance."""
        text = "```script\na = 1\n```\nmiddle\n```script\nb = 2\n```\n"

        blocks = locate_blocks(text)

        assert [b.index for b in blocks] == [0, 1]
        assert [b.source for b in blocks] == ["a = 1\n", "b = 2\n"]
        assert blocks[0].end < blocks[1].start

    def test__no_blocks__returns_empty_list(self) -> None:
        """Plain markdown has no blocks."""
        assert locate_blocks("# Title\n\nJust text.\n") == []

    def test__unterminated_block__not_matched(self) -> None:
        """Leave an opening fence without closing fence alone."""
        assert locate_blocks("before\n```script\nprint('never')\n") == []

    def test__closing_fence__is_first_bare_fence_line(self) -> None:
        """Stop at the first closing fence (non-greedy)."""
        text = "```script\nx = 1\n```\ntext\n```\n"

        blocks = locate_blocks(text)

        assert len(blocks) == 1
        assert blocks[0].source == "x = 1\n"

    def test__other_code_fences__ignored(self) -> None:
        """Only fences tagged script are blocks."""
        text = "```python\nprint('code sample')\n```\n"

        assert locate_blocks(text) == []

    def test__fence_not_at_line_start__ignored(self) -> None:
        """The opening fence must start a line."""
        text = "inline ```script\nprint(1)\n```\n"

        assert locate_blocks(text) == []

    def test__inner_backticks__do_not_close_block(self) -> None:
        """Backticks inside a line do not close the block."""
        text = "```script\nprint('``` not a fence')\n```\n"

        blocks = locate_blocks(text)

        assert blocks[0].source == "print('``` not a fence')\n"

    def test__empty_block__has_empty_source(self) -> None:
        """An opener immediately followed by a closer is an empty block."""
        blocks = locate_blocks("```script\n```\n")

        assert len(blocks) == 1
        assert blocks[0].source == ""

    def test__crlf_line_endings__matched(self) -> None:
        """Accept CRLF delimiters."""
        text = "```script\r\nprint(1)\r\n```\r\nafter"

        blocks = locate_blocks(text)

        assert len(blocks) == 1
        assert text[blocks[0].end :] == "\r\nafter"


class TestSubstituteBlocks:
    """Tests for substitute_blocks()."""

    def test__replaces_span_including_fences(self) -> None:
        """Replace the whole fenced region with the output."""
        text = "# Hi\n\n```script\nprint(\"world\")\n```\n"
        blocks = locate_blocks(text)

        assert substitute_blocks(text, blocks, ["world"]) == "# Hi\n\nworld\n"

    def test__outputs_of_different_length__keep_later_spans(self) -> None:
        """Longer and shorter outputs never corrupt following blocks."""
        text = "A\n```script\n1\n```\nB\n```script\n2\n```\nC\n```script\n3\n```\nD"
        blocks = locate_blocks(text)

        result = substitute_blocks(text, blocks, ["a much longer replacement", "", "x"])

        assert result == "A\na much longer replacement\nB\n\nC\nx\nD"

    def test__no_blocks__returns_text_unchanged(self) -> None:
        """Copy text verbatim when there is nothing to replace."""
        text = "nothing *to* replace\n"

        assert substitute_blocks(text, [], []) == text

    def test__mismatched_outputs__raises(self) -> None:
        """Require one output per block."""
        block = ScriptBlock(index=0, start=0, end=3, source="")

        with pytest.raises(ValueError, match="Expected 1 block outputs"):
            substitute_blocks("abc", [block], [])
