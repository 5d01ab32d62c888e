"""Tests for deck2pdf.parser: slide splitting and block segmentation."""

from __future__ import annotations

import textwrap

from deck2pdf.models import (
    CodeBlock,
    DiagramBlock,
    DiagramRefBlock,
    HeadingBlock,
    ListBlock,
    TableBlock,
    TextBlock,
)
from deck2pdf.parser import parse_deck, parse_deck_file

from conftest import FULL_DECK, MINIMAL_DECK


def _blocks(body: str):
    """Parse a single-slide deck and return its blocks."""
    deck = parse_deck("# T\n---\n## Slide 1: Only\n" + body)
    assert len(deck.slides) == 1
    return list(deck.slides[0].content)


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

class TestMetadata:
    def test_russian_labels(self):
        deck = parse_deck(MINIMAL_DECK)
        assert deck.metadata.title == "T"
        assert deck.metadata.version == "1.0"

    def test_english_labels(self):
        meta = parse_deck(FULL_DECK).metadata
        assert meta.title == "Platform Roadmap"
        assert meta.version == "2.3"
        assert meta.date == "2024-05-01"
        assert meta.phase == "Discovery"

    def test_defaults_when_missing(self):
        meta = parse_deck("---\n## Slide 1: A\nx\n").metadata
        assert meta.title == "Presentation"
        assert meta.version == "1.0"
        assert meta.date == ""

    def test_metadata_after_first_rule_ignored(self):
        deck = parse_deck("# T\n---\n## Slide 1: A\n**Version:** 9.9\n")
        assert deck.metadata.version == "1.0"


    def test_label_on_tenth_line_read(self):
        filler = "\n".join(f"note {i}" for i in range(8))
        deck = parse_deck(f"# T\n{filler}\n**Version:** 9.9\n---\n## Slide 1: A\nx\n")
        assert deck.metadata.version == "9.9"

    def test_label_past_tenth_line_ignored(self):
        filler = "\n".join(f"note {i}" for i in range(9))
        deck = parse_deck(f"# T\n{filler}\n**Version:** 9.9\n---\n## Slide 1: A\nx\n")
        assert deck.metadata.version == "1.0"
    def test_empty_input(self):
        deck = parse_deck("")
        assert deck.slides == ()
        assert deck.metadata.title == "Presentation"


# ---------------------------------------------------------------------------
# Slide splitting
# ---------------------------------------------------------------------------

class TestSlideSplitting:
    def test_two_slide_scenario(self):
        deck = parse_deck(MINIMAL_DECK)
        assert [s.id for s in deck.slides] == [1, 2]
        assert deck.slides[0].title == "Intro"
        assert deck.slides[0].content == (TextBlock("Hello"),)
        assert deck.slides[1].title == "Done"
        assert deck.slides[1].content == (ListBlock("- a\n- b"),)
        assert deck.slides[1].content[0].items == ["a", "b"]

    def test_heading_starts_new_slide_without_rule(self):
        deck = parse_deck("# T\n---\n## Slide 1: A\nx\n## Slide 2: B\ny\n")
        assert [s.title for s in deck.slides] == ["A", "B"]

    def test_rule_without_open_slide_dropped(self):
        deck = parse_deck("# T\n---\n---\n---\n## Slide 1: A\nx\n")
        assert len(deck.slides) == 1

    def test_untitled_slide_gets_synthesized_title(self):
        deck = parse_deck("# T\n---\nloose text\n")
        assert deck.slides[0].title == "Slide 1"
        assert deck.slides[0].content == (TextBlock("loose text"),)

    def test_empty_heading_title_synthesized(self):
        deck = parse_deck("# T\n---\n## Slide 1:\nx\n---\n## Slide 2:   \ny\n")
        assert [s.title for s in deck.slides] == ["Slide 1", "Slide 2"]

    def test_ids_are_sequential(self):
        deck = parse_deck(FULL_DECK)
        assert [s.id for s in deck.slides] == [1, 2, 3, 4, 5]

    def test_raw_markdown_kept(self):
        deck = parse_deck(MINIMAL_DECK)
        assert deck.slides[0].raw_markdown == "## Слайд 1: Intro\nHello"

    def test_crlf_line_endings(self):
        deck = parse_deck(MINIMAL_DECK.replace("\n", "\r\n"))
        assert deck == parse_deck(MINIMAL_DECK)

    def test_idempotent(self):
        assert parse_deck(FULL_DECK) == parse_deck(FULL_DECK)

    def test_parse_deck_file(self, tmp_deck):
        deck = parse_deck_file(tmp_deck)
        assert deck == parse_deck(FULL_DECK)


# ---------------------------------------------------------------------------
# Block segmentation
# ---------------------------------------------------------------------------

class TestBlocks:
    def test_inline_text(self):
        deck = parse_deck(FULL_DECK)
        assert deck.slides[0].content == (TextBlock("A **bold** start with *style*."),)

    def test_heading_and_lists(self):
        blocks = parse_deck(FULL_DECK).slides[1].content
        assert blocks[0] == HeadingBlock("Goals", level=3)
        assert isinstance(blocks[1], ListBlock)
        assert blocks[1].items == ["ship the parser", "ship the exporter"]
        assert not blocks[1].ordered
        assert blocks[2].items == ["first", "second"]
        assert blocks[2].ordered

    def test_level_two_heading_inside_slide(self):
        blocks = _blocks("intro\n## Summary\n")
        assert blocks == [TextBlock("intro"), HeadingBlock("Summary", level=2)]

    def test_deeper_headings_dropped(self):
        assert _blocks("#### Tiny\ntext\n") == [TextBlock("text")]

    def test_table_boundary(self):
        blocks = parse_deck(FULL_DECK).slides[2].content
        assert len(blocks) == 2
        table, text = blocks
        assert isinstance(table, TableBlock)
        assert table.header == ["Name", "Value"]
        assert table.rows == [["a", "1"], ["b", "2"]]
        assert text == TextBlock("After the table.")

    def test_code_block(self):
        blocks = parse_deck(FULL_DECK).slides[3].content
        assert blocks == (CodeBlock('print("hi")', language="python"),)

    def test_diagram_blocks(self):
        inline, ref = parse_deck(FULL_DECK).slides[4].content
        assert inline == DiagramBlock("@startuml\nAlice -> Bob: hello\n@enduml")
        assert isinstance(ref, DiagramRefBlock)
        assert ref.diagram_path == "flows/login.puml"

    def test_one_fenced_block_yields_one_block(self):
        for language, kind in (("python", "code"), ("plantuml", "diagram"), ("", "code")):
            blocks = _blocks(f"```{language}\nline one\n\nline three\n```\n")
            assert len(blocks) == 1
            assert blocks[0].kind == kind
            assert blocks[0].content == "line one\n\nline three"

    def test_startuml_in_untagged_fence_is_diagram(self):
        blocks = _blocks("```\n@startuml\nA -> B\n@enduml\n```\n")
        assert blocks == [DiagramBlock("@startuml\nA -> B\n@enduml")]

    def test_legacy_reference_spelling(self):
        blocks = _blocks("```plantuml\n\n@plantuml: seq/order.puml\n```\n")
        assert blocks[0].kind == "diagram-ref"
        assert blocks[0].diagram_path == "seq/order.puml"

    def test_reference_in_plain_code_stays_code(self):
        blocks = _blocks("```text\n@ref:x.puml\n```\n")
        assert blocks == [CodeBlock("@ref:x.puml", language="text")]

    def test_empty_fence_kept_as_empty_code(self):
        assert _blocks("```python\n```\n") == [CodeBlock("", language="python")]
        assert _blocks("```\n```\nafter\n") == [CodeBlock(""), TextBlock("after")]

    def test_empty_plantuml_fence_kept_as_diagram(self):
        assert _blocks("```plantuml\n```\n") == [DiagramBlock("")]

    def test_unterminated_empty_fence_dropped(self):
        assert _blocks("```python\n") == []
        assert _blocks("text\n```\n\n") == [TextBlock("text")]

    def test_unterminated_fence_flushed(self):
        blocks = _blocks("```python\nx = 1\ny = 2\n")
        assert blocks == [CodeBlock("x = 1\ny = 2\n", language="python")]

    def test_fence_closes_open_list(self):
        blocks = _blocks("- a\n```\ncode\n```\n")
        assert blocks == [ListBlock("- a"), CodeBlock("code")]

    def test_table_closes_open_list(self):
        blocks = _blocks("- a\n| x | y |\n")
        assert blocks == [ListBlock("- a"), TableBlock("| x | y |")]

    def test_blank_line_ends_list(self):
        blocks = _blocks("- a\n\nplain\n")
        assert blocks == [ListBlock("- a"), TextBlock("plain")]

    def test_list_soft_wrap(self):
        blocks = _blocks("- first part\n  continues here\n- second\n")
        assert blocks == [ListBlock("- first part continues here\n- second")]

    def test_star_bullets(self):
        blocks = _blocks("* one\n* two\n")
        assert blocks[0].items == ["one", "two"]

    def test_bare_inline_diagram(self):
        blocks = _blocks("@startuml\nA -> B\n@enduml\nafter\n")
        assert blocks == [DiagramBlock("@startuml\nA -> B\n@enduml"), TextBlock("after")]

    def test_text_mentioning_language_starts_diagram(self):
        # Without an end marker the capture runs to the end of the slide.
        blocks = _blocks("see plantuml docs\nmore\n")
        assert len(blocks) == 1
        assert blocks[0].kind == "diagram"
        assert blocks[0].content.startswith("see plantuml docs\nmore")

    def test_each_text_line_is_a_block(self):
        assert _blocks("one\ntwo\n") == [TextBlock("one"), TextBlock("two")]

    def test_nested_fence_marker_inside_code(self):
        text = textwrap.dedent("""\
            ```markdown
            | not | a | table |
            - not a list
            ```
            """)
        blocks = _blocks(text)
        assert len(blocks) == 1
        assert blocks[0].kind == "code"
        assert "| not | a | table |" in blocks[0].content
